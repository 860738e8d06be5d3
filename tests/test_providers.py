"""Tests for translator/providers.py: vendor selection and failure handling."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest
from langchain_core.messages import AIMessage, HumanMessage

from config import Settings
from translator.providers import (
    GROQ_BASE_URL,
    GROQ_MODEL,
    OPENAI_MODEL,
    ChatCompletionProvider,
    DemoProvider,
    create_provider_client,
    failure_text,
    is_failure,
)

_URL = "https://api.groq.com/openai/v1/chat/completions"


def _llm(**ainvoke_kwargs):
    llm = MagicMock()
    llm.ainvoke = AsyncMock(**ainvoke_kwargs)
    return llm


@pytest.fixture
def make_settings(monkeypatch):
    """Settings from explicit values only, ignoring the host environment and .env."""
    for var in ("GROQ_API_KEY", "OPENAI_API_KEY", "LLM_TIMEOUT_SECONDS"):
        monkeypatch.delenv(var, raising=False)
    return lambda **values: Settings(_env_file=None, **values)


class TestSelection:
    def test_groq_wins_when_both_keys_set(self, make_settings):
        client = create_provider_client(make_settings(groq_api_key="gk", openai_api_key="ok"))
        assert isinstance(client, ChatCompletionProvider)
        assert client.name == "Groq"
        assert client.llm.model_name == GROQ_MODEL
        assert client.llm.openai_api_base == GROQ_BASE_URL
        assert client.llm.temperature == 0.3
        assert client.llm.max_retries == 0

    def test_openai_when_only_openai_key(self, make_settings):
        client = create_provider_client(make_settings(openai_api_key="ok"))
        assert client.name == "OpenAI"
        assert client.llm.model_name == OPENAI_MODEL
        assert client.llm.max_retries == 0

    def test_demo_without_keys(self, make_settings):
        assert isinstance(create_provider_client(make_settings()), DemoProvider)

    def test_timeout_passed_to_client(self, make_settings):
        client = create_provider_client(make_settings(groq_api_key="gk", llm_timeout_seconds=5))
        assert client.llm.request_timeout == 5


class TestChatCompletionProvider:
    @pytest.mark.asyncio
    async def test_returns_trimmed_content(self):
        llm = _llm(return_value=AIMessage(content="  Hola  \n"))
        provider = ChatCompletionProvider("Groq", llm)
        assert await provider.generate("Translate: Hello") == "Hola"
        sent = llm.ainvoke.call_args.args[0]
        assert sent == [HumanMessage(content="Translate: Hello")]

    @pytest.mark.asyncio
    async def test_empty_content_is_not_a_failure(self):
        provider = ChatCompletionProvider("Groq", _llm(return_value=AIMessage(content="")))
        result = await provider.generate("prompt")
        assert result == ""
        assert not is_failure(result)

    @pytest.mark.asyncio
    async def test_non_text_content_yields_empty_string(self):
        provider = ChatCompletionProvider("OpenAI", _llm(return_value=AIMessage(content=[{"type": "image"}])))
        assert await provider.generate("prompt") == ""

    @pytest.mark.asyncio
    async def test_status_error_becomes_failure_text(self, caplog):
        response = httpx.Response(503, text="upstream unavailable", request=httpx.Request("POST", _URL))
        error = openai.APIStatusError("Service Unavailable", response=response, body=None)
        provider = ChatCompletionProvider("Groq", _llm(side_effect=error))
        prompt = "x" * 200

        result = await provider.generate(prompt)

        assert result == "[Translation failed] " + "x" * 80
        assert is_failure(result)
        assert "503" in caplog.text
        assert "upstream unavailable" in caplog.text

    @pytest.mark.asyncio
    async def test_connection_error_becomes_failure_text(self):
        error = openai.APIConnectionError(request=httpx.Request("POST", _URL))
        provider = ChatCompletionProvider("OpenAI", _llm(side_effect=error))
        assert await provider.generate("hello") == failure_text("hello")

    @pytest.mark.asyncio
    async def test_timeout_becomes_failure_text(self, caplog):
        error = openai.APITimeoutError(request=httpx.Request("POST", _URL))
        provider = ChatCompletionProvider("Groq", _llm(side_effect=error))
        prompt = "Translate this slowly " * 10

        result = await provider.generate(prompt)

        assert result == failure_text(prompt)
        assert is_failure(result)
        assert "Groq request failed" in caplog.text


class TestDemoProvider:
    @pytest.mark.asyncio
    async def test_echoes_prompt_prefix(self):
        prompt = "a" * 100 + "b" * 50
        result = await DemoProvider().generate(prompt)
        assert result == '[Demo mode - no API key] Original: "' + "a" * 100 + '..."'
        assert not is_failure(result)


def test_is_failure():
    assert is_failure(failure_text("anything"))
    assert not is_failure("")
    assert not is_failure("Hola")
