"""Construct provider clients from configuration."""

import logging
from dataclasses import dataclass
from typing import Optional

from jobmatch.config.environment import EnvironmentConfig
from jobmatch.config.models import AppConfig

from .base import EmbeddingProvider, LLMProvider
from .exceptions import ProviderConfigurationError
from .openai_client import OpenAIChatProvider, OpenAIEmbeddingProvider, build_openai_client

logger = logging.getLogger(__name__)


@dataclass
class Providers:
    """Provider clients shared by every component of one process."""

    embedding: Optional[EmbeddingProvider] = None
    llm: Optional[LLMProvider] = None

    @property
    def ai_enabled(self) -> bool:
        return self.llm is not None


def build_providers(app_config: AppConfig, env_config: EnvironmentConfig) -> Providers:
    """Build the embedding and LLM clients.

    Without an API key no clients are built: the engine then runs with the
    rule-based pre-filter and scorer only.

    Args:
        app_config: Validated application configuration
        env_config: Environment configuration carrying the API key

    Returns:
        Providers bundle (fields are None when disabled)

    Raises:
        ProviderConfigurationError: If the SDK client cannot be created
    """
    if not env_config.openai_api_key:
        logger.warning(
            "OPENAI_API_KEY not set; AI scoring and embeddings disabled",
            extra={"event": "providers.disabled"},
        )
        return Providers()

    timeout = max(
        app_config.embeddings.request_timeout_seconds, app_config.scoring.ai_timeout_seconds
    )
    try:
        client = build_openai_client(env_config.openai_api_key, timeout_seconds=timeout)
    except Exception as e:
        raise ProviderConfigurationError(f"Failed to create OpenAI client: {e}") from e

    logger.info(
        "Providers configured",
        extra={
            "event": "providers.configured",
            "llm_model": app_config.ai.model,
            "embedding_model": app_config.embeddings.model,
        },
    )
    return Providers(
        embedding=OpenAIEmbeddingProvider(
            client, app_config.embeddings.model, app_config.embeddings.dimension
        ),
        llm=OpenAIChatProvider(client, app_config.ai.model),
    )
