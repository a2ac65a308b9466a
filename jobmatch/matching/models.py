"""Transient data structures passed between matching stages.

Nothing here is persisted directly: candidates and scored matches live for
one matching run; the pipeline turns the final selection into Match and
MatchProvenance rows.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from jobmatch.domain.models import Job


def match_quality(score: int) -> str:
    """Quality band shown next to a match score."""
    if score >= 90:
        return "excellent"
    if score >= 80:
        return "very good"
    if score >= 70:
        return "good"
    if score >= 60:
        return "fair"
    return "weak"


def accuracy_score(relaxation_level: int) -> int:
    """User-facing accuracy for a relaxation level: ``max(70, 100 - 3 * level)``."""
    return max(70, 100 - max(relaxation_level, 0) * 3)


@dataclass(frozen=True)
class MatchCandidate:
    """A job that survived pre-filtering for one user."""

    job: Job
    user_email: str
    prefilter_score: float
    relaxation_level: int
    similarity: Optional[float] = None

    @property
    def job_hash(self) -> str:
        return self.job.job_hash


@dataclass(frozen=True)
class ScoreBreakdown:
    """Per-dimension scores, each 0-100."""

    skills: int
    experience: int
    location: int
    company: int
    overall: int


@dataclass(frozen=True)
class ScoredMatch:
    """A candidate with a score and rationale. Immutable once produced."""

    candidate: MatchCandidate
    match_score: int
    confidence: float
    match_reason: str
    breakdown: ScoreBreakdown

    @property
    def job(self) -> Job:
        return self.candidate.job

    @property
    def job_hash(self) -> str:
        return self.candidate.job.job_hash

    @property
    def relaxation_level(self) -> int:
        return self.candidate.relaxation_level

    @property
    def quality(self) -> str:
        return match_quality(self.match_score)


@dataclass
class SelectionResult:
    """Output of the candidate selector."""

    candidates: List[MatchCandidate]
    relaxation_level: int
    applied_steps: List[str] = field(default_factory=list)
    strict_count: int = 0
    semantic_used: bool = False

    @property
    def accuracy_score(self) -> int:
        return accuracy_score(self.relaxation_level)


@dataclass(frozen=True)
class ScoringTelemetry:
    """Conditions under which a set of scores was produced (feeds provenance)."""

    algorithm: str
    ai_model: Optional[str] = None
    prompt_version: Optional[str] = None
    ai_latency_ms: Optional[int] = None
    ai_cost_usd: Optional[float] = None
    cache_hit: bool = False
    fallback_reason: Optional[str] = None
    retry_count: int = 0
    error_category: Optional[str] = None


@dataclass
class ScoringOutcome:
    """Scores plus the telemetry describing how they were obtained."""

    matches: List[ScoredMatch]
    telemetry: ScoringTelemetry

    @property
    def algorithm(self) -> str:
        return self.telemetry.algorithm


@dataclass
class DistributionResult:
    """The matches chosen for delivery and how the selection went."""

    matches: List[ScoredMatch]
    quota: int
    removed_seen: int = 0
    removed_duplicates: int = 0
    cap_relaxed: bool = False

    @property
    def under_quota(self) -> bool:
        return len(self.matches) < self.quota

    @property
    def is_empty(self) -> bool:
        return not self.matches


def sort_key(match: ScoredMatch) -> Tuple:
    """Delivery order: score, confidence, recency, then job_hash for stability."""
    created: Optional[datetime] = match.job.created_at
    recency = created.timestamp() if created else float("-inf")
    return (-match.match_score, -match.confidence, -recency, match.job_hash)
