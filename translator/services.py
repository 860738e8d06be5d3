from translator.prompts import build_summary_prompt, build_translation_prompt
from translator.providers import ProviderClient


class TranslationService:
    def __init__(self, provider: ProviderClient):
        self.provider = provider

    async def translate(self, text: str, source_language: str, target_language: str) -> str:
        """Translate one message.

        Blank text short-circuits to ``""`` and identical language labels return
        the text untouched; neither case calls the provider. Provider failures
        come back as the failure placeholder, unretried.
        """
        if not text or not text.strip():
            return ""
        if source_language == target_language:
            return text
        return await self.provider.generate(build_translation_prompt(text, source_language, target_language))


class SummarizationService:
    def __init__(self, provider: ProviderClient):
        self.provider = provider

    async def summarize(self, messages) -> str:
        # messages must already be in chronological order
        return await self.provider.generate(build_summary_prompt(messages))
