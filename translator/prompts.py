SUMMARY_SECTIONS = [
    "Symptoms",
    "History",
    "Findings/Diagnoses",
    "Medications",
    "Tests/Results",
    "Plan & Follow-up",
]


def build_translation_prompt(text: str, source_language: str, target_language: str) -> str:
    return (
        "You are a medical translation assistant.\n"
        f"Translate the following text from {source_language} to {target_language}.\n"
        "Only return the translated text, without quotes.\n\n"
        f'Text: """{text}"""'
    )


def render_transcript(messages) -> str:
    """Renders each message as a pair of ``ROLE original:`` / ``ROLE translated:`` lines."""
    blocks = []
    for m in messages:
        role = (m.role or "").upper()
        blocks.append(f"{role} original: {m.text or ''}\n{role} translated: {m.translated_text or ''}")
    return "\n\n".join(blocks)


def build_summary_prompt(messages) -> str:
    return (
        "You are a clinical assistant. Summarize the following doctor–patient conversation.\n"
        f"Highlight these sections clearly with headings: {', '.join(SUMMARY_SECTIONS)}.\n"
        "Use concise bullet points.\n\n"
        + render_transcript(messages)
    )
