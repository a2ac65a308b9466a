"""Exceptions raised inside the matching core."""

from typing import Optional

from jobmatch.persistence.exceptions import DataIntegrityError


class MatchingError(Exception):
    """Base exception for matching failures."""


class AIScoringError(MatchingError):
    """The AI strategy produced no usable result.

    Carries what the provenance row needs to explain the fallback.
    """

    def __init__(
        self,
        message: str,
        error_category: str,
        retry_count: int = 0,
        latency_ms: Optional[int] = None,
        model: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.error_category = error_category
        self.retry_count = retry_count
        self.latency_ms = latency_ms
        self.model = model


class ProvenanceIntegrityError(DataIntegrityError):
    """A persisted match has no provenance row, or would get a second one."""


class PromptRenderError(MatchingError):
    """A scoring prompt template failed to render."""
