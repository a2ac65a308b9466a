"""Domain models for the job match engine."""

from .models import (
    EARLY_CAREER_CATEGORY,
    EmbeddingQueueItem,
    ErrorCategory,
    Job,
    Match,
    MatchAlgorithm,
    MatchProvenance,
    QueueStatus,
    SeenJob,
    SendLedgerEntry,
    Tier,
    UserPreferences,
)

__all__ = [
    "UserPreferences",
    "Job",
    "Match",
    "MatchProvenance",
    "SeenJob",
    "SendLedgerEntry",
    "EmbeddingQueueItem",
    "Tier",
    "MatchAlgorithm",
    "ErrorCategory",
    "QueueStatus",
    "EARLY_CAREER_CATEGORY",
]
