"""Factories for domain objects used across the test suite."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jobmatch.domain.models import Job, UserPreferences
from jobmatch.matching.models import MatchCandidate, ScoreBreakdown, ScoredMatch

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


def make_user(email: str = "ana@example.com", **overrides) -> UserPreferences:
    data = {
        "email": email,
        "target_cities": ["Berlin"],
        "career_path": ["tech"],
        "tier": "free",
    }
    data.update(overrides)
    return UserPreferences(**data)


def make_job(
    job_hash: str,
    title: str = "Graduate Software Engineer",
    city: Optional[str] = "Berlin",
    age_days: Optional[float] = 1,
    now: datetime = NOW,
    **overrides,
) -> Job:
    """An active, early-career tech job in Berlin unless overridden."""
    data = {
        "job_hash": job_hash,
        "title": title,
        "company": overrides.pop("company", f"Company {job_hash}"),
        "city": city,
        "country": overrides.pop("country", "Germany"),
        "categories": overrides.pop("categories", ["early-career", "tech-transformation"]),
        "created_at": None if age_days is None else now - timedelta(days=age_days),
    }
    data.update(overrides)
    return Job(**data)


def make_candidate(
    job: Job,
    user_email: str = "ana@example.com",
    relaxation_level: int = 0,
    similarity: Optional[float] = None,
) -> MatchCandidate:
    return MatchCandidate(
        job=job,
        user_email=user_email,
        prefilter_score=100.0,
        relaxation_level=relaxation_level,
        similarity=similarity,
    )


def make_scored(
    job: Job,
    score: int,
    confidence: float = 0.8,
    reason: str = "Test match",
    relaxation_level: int = 0,
) -> ScoredMatch:
    return ScoredMatch(
        candidate=make_candidate(job, relaxation_level=relaxation_level),
        match_score=score,
        confidence=confidence,
        match_reason=reason,
        breakdown=ScoreBreakdown(
            skills=score, experience=score, location=score, company=score, overall=score
        ),
    )
