"""Candidate selection with an ordered, deterministic relaxation protocol.

The strict pass keeps jobs that are matchable, early-career, in one of the
user's target cities, in one of their career-path categories and recently
posted. When fewer than ``min_candidates`` survive, relaxation steps are
applied in their configured order, each adding ``relaxation_level_step`` to
the relaxation level, until enough candidates survive or the steps run out.

Two filters are never relaxed: the job must be active and early-career.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Sequence

from jobmatch.config.models import MatchingConfig, RelaxationStep
from jobmatch.domain.models import Job, UserPreferences
from jobmatch.logging import get_logger
from jobmatch.utils.timestamps import age_in_days, utc_now

from .categories import category_overlap, expand_career_paths
from .models import MatchCandidate, SelectionResult, accuracy_score

logger = get_logger(__name__, component="prefilter")

__all__ = ["CandidateSelector", "accuracy_score"]


@dataclass(frozen=True)
class _Constraints:
    cities: Optional[FrozenSet[str]]
    countries: Optional[FrozenSet[str]]
    categories: Optional[FrozenSet[str]]
    freshness_days: float


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


class CandidateSelector:
    """Applies hard constraints and relaxation to a job pool.

    Args:
        config: Thresholds, windows and the ordered relaxation steps
    """

    def __init__(self, config: MatchingConfig):
        self.config = config
        self.steps = [RelaxationStep(step) for step in config.relaxation_steps]

    def select_candidates(
        self,
        profile: UserPreferences,
        job_pool: Sequence[Job],
        similarities: Optional[Dict[str, float]] = None,
        now: Optional[datetime] = None,
    ) -> SelectionResult:
        """Select and rank candidates for one user.

        Args:
            profile: The user's preferences
            job_pool: Jobs to choose from (read-only)
            similarities: job_hash -> cosine similarity, or None without
                semantic signal
            now: Reference time for freshness (defaults to current UTC time)

        Returns:
            SelectionResult with at most ``max_candidates`` candidates, the
            relaxation level reached and the steps applied
        """
        now = now or utc_now()
        eligible = [job for job in job_pool if job.is_candidate and job.is_early_career]
        constraints = self._strict_constraints(profile)

        level = 0
        first_level: Dict[str, int] = {}
        self._collect(eligible, constraints, now, level, first_level)
        strict_count = len(first_level)
        applied: List[str] = []

        for step in self.steps:
            if len(first_level) >= self.config.min_candidates:
                break
            constraints = self._relax(step, constraints, profile, eligible)
            level += self.config.relaxation_level_step
            applied.append(step.value)
            self._collect(eligible, constraints, now, level, first_level)
            logger.debug(
                f"Relaxation step {step.value} applied",
                extra={
                    "event": "prefilter.relaxed",
                    "step": step.value,
                    "relaxation_level": level,
                    "candidates": len(first_level),
                },
            )

        by_hash = {job.job_hash: job for job in eligible}
        candidates = [
            MatchCandidate(
                job=by_hash[job_hash],
                user_email=profile.email,
                prefilter_score=self.prefilter_score(by_hash[job_hash], profile, now),
                relaxation_level=job_level,
                similarity=(similarities or {}).get(job_hash),
            )
            for job_hash, job_level in first_level.items()
        ]
        candidates.sort(key=_rank_key)
        candidates = candidates[: self.config.max_candidates]

        if applied:
            logger.info(
                "Pre-filter relaxed constraints",
                extra={
                    "event": "prefilter.relaxed",
                    "strict_candidates": strict_count,
                    "candidates": len(candidates),
                    "relaxation_level": level,
                    "steps": applied,
                },
            )

        return SelectionResult(
            candidates=candidates,
            relaxation_level=level,
            applied_steps=applied,
            strict_count=strict_count,
            semantic_used=bool(similarities),
        )

    def prefilter_score(self, job: Job, profile: UserPreferences, now: datetime) -> float:
        """Rule-based relevance in [0, 100] used when ranking without embeddings.

        Location contributes up to 40, category overlap 40 and freshness 20.
        """
        cities = {_norm(city) for city in profile.target_cities}
        score = 0.0
        if _norm(job.city) in cities:
            score += 40
        elif job.is_remote_friendly:
            score += 20

        if category_overlap(job.categories, profile.career_path) > 0:
            score += 40

        window = self.config.relaxed_freshness_window_seconds / 86400
        age = age_in_days(job.created_at, now)
        if age is None:
            score += 10
        else:
            score += 20 * max(0.0, 1.0 - age / window)
        return round(score, 2)

    def _strict_constraints(self, profile: UserPreferences) -> _Constraints:
        return _Constraints(
            cities=frozenset(_norm(city) for city in profile.target_cities),
            countries=None,
            categories=expand_career_paths(profile.career_path),
            freshness_days=self.config.freshness_window_seconds / 86400,
        )

    def _relax(
        self,
        step: RelaxationStep,
        constraints: _Constraints,
        profile: UserPreferences,
        eligible: Sequence[Job],
    ) -> _Constraints:
        if step == RelaxationStep.EXPAND_TO_COUNTRY:
            if constraints.cities is None:
                return constraints
            countries = frozenset(
                _norm(job.country)
                for job in eligible
                if job.country and _norm(job.city) in constraints.cities
            )
            return replace(constraints, countries=countries or None)
        if step == RelaxationStep.DROP_CITY:
            return replace(constraints, cities=None, countries=None)
        if step == RelaxationStep.WIDEN_FRESHNESS:
            return replace(
                constraints,
                freshness_days=self.config.relaxed_freshness_window_seconds / 86400,
            )
        if step == RelaxationStep.DROP_CATEGORY:
            return replace(constraints, categories=None)
        raise ValueError(f"Unknown relaxation step: {step}")

    @staticmethod
    def _passes(job: Job, constraints: _Constraints, now: datetime) -> bool:
        if constraints.cities is not None:
            in_city = _norm(job.city) in constraints.cities
            in_country = (
                constraints.countries is not None and _norm(job.country) in constraints.countries
            )
            if not (in_city or in_country):
                return False

        if constraints.categories is not None:
            if not constraints.categories.intersection(job.categories):
                return False

        age = age_in_days(job.created_at, now)
        if age is not None and age > constraints.freshness_days:
            return False
        return True

    def _collect(
        self,
        jobs: Sequence[Job],
        constraints: _Constraints,
        now: datetime,
        level: int,
        first_level: Dict[str, int],
    ) -> None:
        for job in jobs:
            if job.job_hash not in first_level and self._passes(job, constraints, now):
                first_level[job.job_hash] = level


def _rank_key(candidate: MatchCandidate):
    """Stricter candidates first, then similarity, pre-filter score and recency."""
    created = candidate.job.created_at
    return (
        candidate.relaxation_level,
        -(candidate.similarity if candidate.similarity is not None else -2.0),
        -candidate.prefilter_score,
        -(created.timestamp() if created else float("-inf")),
        candidate.job_hash,
    )
