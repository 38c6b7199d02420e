"""
Tests for the OpenAI and Gemini REST providers over httpx.MockTransport.
"""
import json

import httpx
import pytest

from conftest import json_response
from medibuddy.errors import ConfigurationError, UpstreamApiError
from medibuddy.services.llm_provider import (
    GeminiProvider,
    LLMProvider,
    OpenAIProvider,
    get_llm_provider,
)


def _capture(body, status_code=200):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return json_response(body, status_code)

    return httpx.MockTransport(handler), seen


@pytest.mark.asyncio
async def test_openai_chat_payload_and_response():
    transport, seen = _capture({
        "model": "gpt-4",
        "choices": [{"message": {"content": ' {"conditions": []} '}, "finish_reason": "stop"}],
        "usage": {"total_tokens": 42},
    })
    provider = OpenAIProvider(api_key="sk-test", transport=transport)

    response = await provider.chat("Extract", system_message="You extract", json_mode=True, max_tokens=2000, temperature=0.1)

    assert response.text == '{"conditions": []}'
    assert response.tokens_used == 42
    assert response.provider == "openai"

    request = seen[0]
    payload = json.loads(request.content)
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert payload["messages"][0] == {"role": "system", "content": "You extract"}
    assert payload["messages"][1] == {"role": "user", "content": "Extract"}
    assert payload["response_format"] == {"type": "json_object"}
    assert payload["max_tokens"] == 2000


@pytest.mark.asyncio
async def test_gemini_chat_generation_config():
    transport, seen = _capture({
        "candidates": [{"content": {"parts": [{"text": "SUBJECTIVE: "}, {"text": "ok"}]}, "finishReason": "STOP"}],
        "usageMetadata": {"totalTokenCount": 10},
    })
    provider = GeminiProvider(api_key="g-test", transport=transport)

    response = await provider.chat("Write report", model="gemini-2.5-flash", max_tokens=2048, temperature=0.3, topK=40, topP=0.95)

    assert response.text == "SUBJECTIVE: ok"
    request = seen[0]
    assert request.url.path.endswith("/gemini-2.5-flash:generateContent")
    assert request.url.params["key"] == "g-test"
    payload = json.loads(request.content)
    assert payload["contents"][0]["parts"][0]["text"] == "Write report"
    assert payload["generationConfig"] == {"temperature": 0.3, "maxOutputTokens": 2048, "topK": 40, "topP": 0.95}


@pytest.mark.asyncio
async def test_gemini_prepends_system_message():
    transport, seen = _capture({"candidates": []})
    provider = GeminiProvider(api_key="g-test", transport=transport)

    response = await provider.chat("Transcript", system_message="Be precise")

    assert response.text == ""
    assert json.loads(seen[0].content)["contents"][0]["parts"][0]["text"] == "Be precise\n\nTranscript"


@pytest.mark.asyncio
async def test_error_status_is_upstream_error():
    transport, _ = _capture({"error": "quota"}, status_code=429)
    provider = OpenAIProvider(api_key="sk-test", transport=transport)

    with pytest.raises(UpstreamApiError) as exc_info:
        await provider.chat("hi")
    assert exc_info.value.status_code == 429
    assert exc_info.value.service == "openai"


@pytest.mark.asyncio
async def test_missing_key_is_configuration_error(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    provider = OpenAIProvider(transport=httpx.MockTransport(lambda request: json_response({})))

    assert provider.is_available() is False
    with pytest.raises(ConfigurationError):
        await provider.chat("hi")


@pytest.mark.asyncio
async def test_openai_without_choices():
    transport, _ = _capture({"choices": []})

    with pytest.raises(UpstreamApiError):
        await OpenAIProvider(api_key="sk-test", transport=transport).chat("hi")


def test_get_llm_provider():
    assert isinstance(get_llm_provider("gemini", api_key="x"), GeminiProvider)
    assert isinstance(get_llm_provider(LLMProvider.OPENAI), OpenAIProvider)
    with pytest.raises(ConfigurationError):
        get_llm_provider("claude")
