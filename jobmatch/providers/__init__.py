"""Embedding and LLM provider clients, injected into matching components."""

from .base import CompletionRequest, EmbeddingProvider, LLMCompletion, LLMProvider
from .exceptions import (
    ProviderConfigurationError,
    ProviderError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from .factory import Providers, build_providers
from .openai_client import OpenAIChatProvider, OpenAIEmbeddingProvider, build_openai_client
from .pricing import estimate_cost_usd

__all__ = [
    "EmbeddingProvider",
    "LLMProvider",
    "CompletionRequest",
    "LLMCompletion",
    "OpenAIEmbeddingProvider",
    "OpenAIChatProvider",
    "build_openai_client",
    "Providers",
    "build_providers",
    "estimate_cost_usd",
    "ProviderError",
    "ProviderTimeoutError",
    "ProviderResponseError",
    "ProviderUnavailableError",
    "ProviderConfigurationError",
]
