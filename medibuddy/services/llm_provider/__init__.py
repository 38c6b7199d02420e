"""
LLM Provider Abstraction Layer

Usage:
    from medibuddy.services.llm_provider import get_llm_provider, LLMProvider

    provider = get_llm_provider(LLMProvider.OPENAI)
    response = await provider.chat(message="Your prompt", json_mode=True)
"""

from .llm_abstract import (
    LLMProvider,
    LLMResponse,
    LLMProviderBase,
    GeminiProvider,
    OpenAIProvider,
    get_llm_provider,
)

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "LLMProviderBase",
    "GeminiProvider",
    "OpenAIProvider",
    "get_llm_provider",
]
