"""
LLM Provider Abstraction Layer
==============================
One interface over the providers used for entity extraction and report
generation (OpenAI chat completions, Google Gemini generateContent).

Usage:
    from medibuddy.services.llm_provider import get_llm_provider, LLMProvider

    provider = get_llm_provider(LLMProvider.GEMINI)
    response = await provider.chat(message="Your prompt", max_tokens=2048)

Both providers call the REST endpoints directly over httpx. API keys are
read when a call is made, so the app starts without them.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

import httpx

from medibuddy.config import (
    GEMINI_API_URL,
    GEMINI_MODEL,
    LLM_TIMEOUT,
    OPENAI_API_URL,
    OPENAI_MODEL,
    get_gemini_api_key,
    get_openai_api_key,
)
from medibuddy.errors import ConfigurationError, UpstreamApiError

logger = logging.getLogger(__name__)


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    GEMINI = "gemini"


@dataclass
class LLMResponse:
    """Standardized LLM response."""
    text: str
    model: str
    provider: str
    tokens_used: Optional[int] = None
    finish_reason: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class LLMProviderBase(ABC):
    """Abstract base class for LLM providers."""

    provider: LLMProvider

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = LLM_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @abstractmethod
    async def chat(
        self,
        message: str,
        model: Optional[str] = None,
        max_tokens: int = 500,
        temperature: float = 0.0,
        system_message: Optional[str] = None,
        json_mode: bool = False,
        **kwargs
    ) -> LLMResponse:
        """
        Send a chat message to the LLM.

        Args:
            message: User message/prompt
            model: Model name (uses default if None)
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0.0 = deterministic)
            system_message: Optional system message/instruction
            json_mode: Ask the provider for a JSON object response
            **kwargs: Provider-specific generation parameters

        Returns:
            LLMResponse with text, model, provider, and metadata

        Raises:
            ConfigurationError: API key not configured
            UpstreamApiError: Non-2xx response or transport failure
        """

    @abstractmethod
    def get_default_model(self) -> str:
        """Get default model name for this provider."""

    @abstractmethod
    def _read_api_key(self) -> str:
        """Read the provider's key from the environment."""

    def is_available(self) -> bool:
        """Check if an API key is configured."""
        return bool(self._api_key or self._read_api_key())

    def _require_api_key(self) -> str:
        api_key = self._api_key or self._read_api_key()
        if not api_key:
            raise ConfigurationError(f"{self.provider.value} API key not configured")
        return api_key

    async def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        service = self.provider.value
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=headers, params=params)
        except httpx.RequestError as e:
            raise UpstreamApiError(f"{service} request failed: {e}", service=service) from e

        if response.status_code >= 400:
            raise UpstreamApiError(
                f"{service} API error: {response.status_code} {response.text[:500]}",
                status_code=response.status_code,
                service=service,
            )
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamApiError(f"{service} returned a non-JSON body", status_code=response.status_code, service=service) from e


class OpenAIProvider(LLMProviderBase):
    """OpenAI chat completions provider."""

    provider = LLMProvider.OPENAI

    def __init__(self, *args, api_url: str = OPENAI_API_URL, **kwargs):
        super().__init__(*args, **kwargs)
        self.api_url = api_url

    def _read_api_key(self) -> str:
        return get_openai_api_key()

    def get_default_model(self) -> str:
        return OPENAI_MODEL

    async def chat(
        self,
        message: str,
        model: Optional[str] = None,
        max_tokens: int = 500,
        temperature: float = 0.0,
        system_message: Optional[str] = None,
        json_mode: bool = False,
        **kwargs
    ) -> LLMResponse:
        api_key = self._require_api_key()
        model_name = model or self.get_default_model()

        messages = []
        if system_message:
            messages.append({"role": "system", "content": system_message})
        messages.append({"role": "user", "content": message})

        payload: Dict[str, Any] = {
            "model": model_name,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            **kwargs,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        data = await self._post_json(
            self.api_url,
            payload,
            headers={"Content-Type": "application/json", "Authorization": f"Bearer {api_key}"},
        )

        choices = data.get("choices") or []
        if not choices:
            raise UpstreamApiError("OpenAI response has no choices", service=self.provider.value)
        choice = choices[0]
        usage = data.get("usage") or {}

        return LLMResponse(
            text=((choice.get("message") or {}).get("content") or "").strip(),
            model=data.get("model") or model_name,
            provider=self.provider.value,
            tokens_used=usage.get("total_tokens"),
            finish_reason=choice.get("finish_reason"),
            metadata={"usage": usage},
        )


class GeminiProvider(LLMProviderBase):
    """Google Gemini generateContent provider."""

    provider = LLMProvider.GEMINI

    def __init__(self, *args, api_url: str = GEMINI_API_URL, **kwargs):
        super().__init__(*args, **kwargs)
        self.api_url = api_url.rstrip("/")

    def _read_api_key(self) -> str:
        return get_gemini_api_key()

    def get_default_model(self) -> str:
        return GEMINI_MODEL

    async def chat(
        self,
        message: str,
        model: Optional[str] = None,
        max_tokens: int = 500,
        temperature: float = 0.0,
        system_message: Optional[str] = None,
        json_mode: bool = False,
        **kwargs
    ) -> LLMResponse:
        """
        Gemini has no separate system role on this endpoint; the system
        message is prepended to the prompt. Extra kwargs (topK, topP) go
        into generationConfig.
        """
        api_key = self._require_api_key()
        model_name = model or self.get_default_model()

        full_message = message
        if system_message:
            full_message = f"{system_message}\n\n{message}"

        generation_config: Dict[str, Any] = {
            "temperature": temperature,
            "maxOutputTokens": max_tokens,
            **kwargs,
        }
        if json_mode:
            generation_config["responseMimeType"] = "application/json"

        data = await self._post_json(
            f"{self.api_url}/{model_name}:generateContent",
            {
                "contents": [{"parts": [{"text": full_message}]}],
                "generationConfig": generation_config,
            },
            headers={"Content-Type": "application/json"},
            params={"key": api_key},
        )

        candidates = data.get("candidates") or []
        candidate = candidates[0] if candidates else {}
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        usage = data.get("usageMetadata") or {}

        return LLMResponse(
            text=text.strip(),
            model=model_name,
            provider=self.provider.value,
            tokens_used=usage.get("totalTokenCount"),
            finish_reason=candidate.get("finishReason"),
            metadata={"usage": usage},
        )


# Provider registry
_PROVIDERS: Dict[LLMProvider, type] = {
    LLMProvider.OPENAI: OpenAIProvider,
    LLMProvider.GEMINI: GeminiProvider,
}


def get_llm_provider(provider: Union[LLMProvider, str] = LLMProvider.OPENAI, **kwargs) -> LLMProviderBase:
    """
    Get an LLM provider instance.

    Args:
        provider: Provider enum member or its value ("openai", "gemini")
        **kwargs: Passed to the provider constructor (api_key, timeout, transport)

    Raises:
        ConfigurationError: Unknown provider name
    """
    try:
        provider = LLMProvider(provider)
    except ValueError as e:
        raise ConfigurationError(f"Unknown LLM provider: {provider}") from e
    return _PROVIDERS[provider](**kwargs)
