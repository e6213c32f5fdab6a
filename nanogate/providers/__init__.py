"""LLM provider abstraction and provider registry."""

from nanogate.providers.base import ChatProvider, ChatResponse
from nanogate.providers.litellm_provider import LiteLLMProvider
from nanogate.providers.registry import DEFAULT_PROVIDERS, ProviderRegistry, ProviderSpec

__all__ = [
    "ChatProvider",
    "ChatResponse",
    "LiteLLMProvider",
    "ProviderRegistry",
    "ProviderSpec",
    "DEFAULT_PROVIDERS",
]
