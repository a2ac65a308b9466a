"""Data models for matching-run tracking and reporting."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

STATUS_MATCHED = "matched"
STATUS_LOW_MATCH = "low_match"
STATUS_ZERO_MATCH = "zero_match"
STATUS_QUOTA_EXHAUSTED = "quota_exhausted"
STATUS_FAILED = "failed"


@dataclass
class UserRunResult:
    """
    Outcome of one user's matching run.

    Attributes:
        user_email: The user
        tier: The user's tier
        status: matched, low_match (under quota), zero_match, quota_exhausted or failed
        match_count: Matches persisted and delivered
        quota: Tier quota for this send
        candidate_count: Candidates after pre-filtering
        relaxation_level: Relaxation level reached by the pre-filter
        accuracy_score: User-facing accuracy for that level
        algorithm: Scoring strategy that produced the matches
        fallback_reason: Why the primary strategy was not used, if it was not
        error_category: AI failure category, if any
        semantic_used: Whether embedding similarity ranked the candidates
        match_ids: Ids of persisted Match rows
        error_message: Failure description for status ``failed``
        duration_seconds: Wall time of the run
    """

    user_email: str
    tier: str
    status: str
    match_count: int = 0
    quota: int = 0
    candidate_count: int = 0
    relaxation_level: int = 0
    accuracy_score: int = 100
    algorithm: Optional[str] = None
    fallback_reason: Optional[str] = None
    error_category: Optional[str] = None
    semantic_used: bool = False
    match_ids: List[int] = field(default_factory=list)
    error_message: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def under_supplied(self) -> bool:
        return self.status in (STATUS_LOW_MATCH, STATUS_ZERO_MATCH)


@dataclass
class BatchRunResult:
    """
    Aggregate results from one batch over many users.

    Attributes:
        run_id: Correlation id shared by every match of the batch
        run_started_at: UTC timestamp when the batch began
        run_finished_at: UTC timestamp when the batch completed
        user_results: Per-user outcomes
        jobs_in_pool: Active jobs considered
        skipped: Whether the batch was skipped (previous batch still running)
        total_duration_seconds: Total time for the batch
    """

    run_id: str
    run_started_at: datetime
    run_finished_at: datetime
    user_results: List[UserRunResult] = field(default_factory=list)
    jobs_in_pool: int = 0
    skipped: bool = False
    total_duration_seconds: float = 0.0

    def __post_init__(self):
        if self.total_duration_seconds == 0.0:
            delta = self.run_finished_at - self.run_started_at
            self.total_duration_seconds = delta.total_seconds()

    def _count(self, status: str) -> int:
        return sum(1 for r in self.user_results if r.status == status)

    @property
    def users_processed(self) -> int:
        return len(self.user_results)

    @property
    def matched_count(self) -> int:
        return self._count(STATUS_MATCHED)

    @property
    def low_match_count(self) -> int:
        return self._count(STATUS_LOW_MATCH)

    @property
    def zero_match_count(self) -> int:
        return self._count(STATUS_ZERO_MATCH)

    @property
    def quota_exhausted_count(self) -> int:
        return self._count(STATUS_QUOTA_EXHAUSTED)

    @property
    def failed_count(self) -> int:
        return self._count(STATUS_FAILED)

    @property
    def total_matches(self) -> int:
        return sum(r.match_count for r in self.user_results)

    @property
    def ai_count(self) -> int:
        return sum(1 for r in self.user_results if r.algorithm == "ai" and r.match_count)

    @property
    def rules_count(self) -> int:
        return sum(1 for r in self.user_results if r.algorithm == "rules" and r.match_count)

    @property
    def fallback_count(self) -> int:
        return sum(1 for r in self.user_results if r.fallback_reason)

    @property
    def had_errors(self) -> bool:
        return self.failed_count > 0

    @property
    def zero_match_rate(self) -> float:
        """Share of scored users (not quota-gated, not failed) with no matches."""
        scored = self.matched_count + self.low_match_count + self.zero_match_count
        return round(self.zero_match_count / scored, 4) if scored else 0.0

    def to_dict(self) -> dict:
        return {
            "users_processed": self.users_processed,
            "matched": self.matched_count,
            "low_match": self.low_match_count,
            "zero_match": self.zero_match_count,
            "quota_exhausted": self.quota_exhausted_count,
            "failed": self.failed_count,
            "total_matches": self.total_matches,
            "ai_users": self.ai_count,
            "rules_users": self.rules_count,
            "fallbacks": self.fallback_count,
            "zero_match_rate": self.zero_match_rate,
        }
