"""Exceptions raised by LLM provider clients.

Embedding providers never raise to callers (they return None), so only the
LLM side of the provider layer uses this hierarchy.
"""


class ProviderError(Exception):
    """Base exception for provider failures.

    ``error_category`` is the value recorded in match provenance when the
    failure forces a fallback.
    """

    error_category = "provider_error"


class ProviderTimeoutError(ProviderError):
    """The provider did not answer within the configured timeout."""

    error_category = "timeout"


class ProviderResponseError(ProviderError):
    """The provider answered, but not with the structured output requested."""

    error_category = "schema_violation"


class ProviderUnavailableError(ProviderError):
    """Network failure, rate limit, authentication or server error."""

    def __init__(self, message: str, status_code: int = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderConfigurationError(ProviderError):
    """A provider could not be constructed from the given settings."""
