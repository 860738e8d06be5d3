"""Chat-completion backends behind one ``generate(prompt)`` call.

The backend is chosen once at startup from the configured credentials and
passed into the translation and summarization services.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import openai
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI

from config import Settings

logger = logging.getLogger(__name__)

FAILURE_PREFIX = "[Translation failed]"
DEMO_PREFIX = "[Demo mode - no API key]"

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
GROQ_MODEL = "llama-3.1-8b-instant"
OPENAI_MODEL = "gpt-4o-mini"


def failure_text(prompt: str) -> str:
    return f"{FAILURE_PREFIX} {prompt[:80]}"


def is_failure(text: str) -> bool:
    """True when ``text`` is the placeholder stored in place of a failed generation."""
    return bool(text) and text.startswith(FAILURE_PREFIX)


class ProviderClient(ABC):
    name = "base"

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Return generated text, or the failure placeholder. Never raises."""


class ChatCompletionProvider(ProviderClient):
    """One non-streaming chat completion per call, no retries."""

    def __init__(self, name: str, llm: BaseChatModel):
        self.name = name
        self.llm = llm

    async def generate(self, prompt: str) -> str:
        try:
            response = await self.llm.ainvoke([HumanMessage(content=prompt)])
        except openai.APIStatusError as e:
            logger.error("%s API error: %s %s", self.name, e.status_code, e.response.text)
            return failure_text(prompt)
        except Exception:
            logger.exception("%s request failed", self.name)
            return failure_text(prompt)
        content = getattr(response, "content", None)
        if not isinstance(content, str):
            return ""
        return content.strip()


class DemoProvider(ProviderClient):
    """Offline stand-in used when no vendor credential is configured."""

    name = "demo"

    async def generate(self, prompt: str) -> str:
        return f'{DEMO_PREFIX} Original: "{prompt[:100]}..."'


def create_provider_client(settings: Settings) -> ProviderClient:
    """Groq if its key is set, else OpenAI, else the demo provider."""
    if settings.groq_api_key:
        llm = ChatOpenAI(
            model=GROQ_MODEL,
            api_key=settings.groq_api_key,
            base_url=GROQ_BASE_URL,
            temperature=0.3,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
        )
        return ChatCompletionProvider("Groq", llm)
    if settings.openai_api_key:
        llm = ChatOpenAI(
            model=OPENAI_MODEL,
            api_key=settings.openai_api_key,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
        )
        return ChatCompletionProvider("OpenAI", llm)
    logger.warning("No GROQ_API_KEY or OPENAI_API_KEY set, running in demo mode")
    return DemoProvider()
