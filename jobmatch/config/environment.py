"""Environment variable loading and validation."""

import os
from typing import Optional

from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./data/jobmatch.db"

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class EnvironmentConfig:
    """Secrets and deployment settings read from the process environment."""

    def __init__(
        self,
        openai_api_key: Optional[str] = None,
        database_url: Optional[str] = None,
        log_level: Optional[str] = None,
        environment: Optional[str] = None,
    ):
        self.openai_api_key = openai_api_key
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.log_level = log_level
        self.environment = environment or "development"

    @property
    def ai_enabled(self) -> bool:
        """True when an LLM / embedding provider can be constructed."""
        return bool(self.openai_api_key)

    def __repr__(self) -> str:
        key_state = "set" if self.openai_api_key else "unset"
        return (
            f"EnvironmentConfig(openai_api_key={key_state}, "
            f"database_url={self.database_url!r}, environment={self.environment!r})"
        )


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Optional environment variables:
    - OPENAI_API_KEY: Enables AI scoring and embeddings when set
    - DATABASE_URL: SQLAlchemy URL (default: sqlite:///./data/jobmatch.db)
    - LOG_LEVEL: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - ENVIRONMENT: Deployment name used in log output (default: development)

    Returns:
        EnvironmentConfig object with validated values

    Raises:
        ConfigurationError: If a variable is set to an invalid value
    """
    errors = []

    api_key = _clean_secret(os.getenv("OPENAI_API_KEY"))
    database_url = (os.getenv("DATABASE_URL") or "").strip() or None
    log_level = (os.getenv("LOG_LEVEL") or "").strip() or None
    environment = (os.getenv("ENVIRONMENT") or "").strip() or None

    if api_key is not None and not api_key.startswith("sk-"):
        errors.append("Invalid OPENAI_API_KEY: expected a key starting with 'sk-'")

    if log_level and log_level.upper() not in _VALID_LOG_LEVELS:
        errors.append(
            f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(_VALID_LOG_LEVELS)}"
        )

    if database_url and "://" not in database_url:
        errors.append(f"Invalid DATABASE_URL: '{database_url}' is not a SQLAlchemy URL")

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your credentials",
                "Unset OPENAI_API_KEY to run with rule-based scoring only",
            ],
        )

    return EnvironmentConfig(
        openai_api_key=api_key,
        database_url=database_url,
        log_level=log_level.upper() if log_level else None,
        environment=environment,
    )


def _clean_secret(raw: Optional[str]) -> Optional[str]:
    """Strip whitespace, surrounding quotes and line breaks pasted into .env files."""
    if raw is None:
        return None
    cleaned = raw.strip().strip('"').strip("'").replace("\n", "").replace("\r", "").strip()
    return cleaned or None
