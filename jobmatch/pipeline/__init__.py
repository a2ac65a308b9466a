"""Matching pipeline orchestration: per-user runs and the batch driver."""

from .models import BatchRunResult, UserRunResult
from .runner import MatchingPipeline

__all__ = [
    "MatchingPipeline",
    "BatchRunResult",
    "UserRunResult",
]
