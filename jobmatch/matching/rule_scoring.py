"""Deterministic rule-based scoring.

Used as the primary strategy for cost-sensitive tiers and as the fallback
whenever AI scoring fails. Scores depend only on the profile and the job,
never on the clock or on external services, so identical inputs always
score identically.
"""

import re
from typing import Iterable, List, Optional, Sequence, Set

from jobmatch.config.models import RuleWeights
from jobmatch.domain.models import Job, UserPreferences

from .categories import category_overlap, expand_career_paths
from .models import MatchCandidate, ScoreBreakdown, ScoredMatch, sort_key

NEUTRAL_SCORE = 70

SENIOR_MARKERS = ("senior", "lead", "principal", "head of", "director")
JUNIOR_MARKERS = ("junior", "graduate", "intern", "trainee", "entry level", "entry-level", "associate")

COMPANY_SIZE_MARKERS = {
    "startup": ("startup", "start-up", "seed", "series a", "early-stage"),
    "scaleup": ("scaleup", "scale-up", "series b", "series c", "fast-growing"),
    "enterprise": ("enterprise", "global", "fortune", "multinational", "corporate"),
}


def _words(text: str | None) -> str:
    return f" {re.sub(r'[^a-z0-9+#]+', ' ', (text or '').lower())} "


def _contains(haystack: str, term: str) -> bool:
    needle = _words(term).strip()
    return bool(needle) and f" {needle} " in haystack


def _lower_set(values: Iterable[str]) -> Set[str]:
    return {v.strip().lower() for v in values if v and v.strip()}


def category_score(job: Job, profile: UserPreferences) -> int:
    """100 on a category overlap, 70 for users without a category filter, else 30."""
    if expand_career_paths(profile.career_path) is None:
        return NEUTRAL_SCORE
    return 100 if category_overlap(job.categories, profile.career_path) else 30


def location_score(job: Job, profile: UserPreferences) -> int:
    cities = _lower_set(profile.target_cities)
    if not cities:
        return NEUTRAL_SCORE
    if job.city and job.city.strip().lower() in cities:
        return 100
    if job.is_remote_friendly:
        return 90
    return 30


def skills_score(job: Job, profile: UserPreferences) -> int:
    terms = list(profile.skills) + list(profile.roles_selected)
    if not terms:
        return NEUTRAL_SCORE
    text = _words(f"{job.title} {job.description or ''}")
    hits = sum(1 for term in terms if _contains(text, term))
    return min(100, 50 + 15 * hits)


def experience_score(job: Job, profile: UserPreferences) -> int:
    text = _words(job.title)
    senior = any(_contains(text, m) for m in SENIOR_MARKERS)
    preference = (profile.entry_level_preference or "").lower()
    if senior:
        return 20
    if job.is_internship and "intern" in preference:
        return 100
    if job.is_graduate and "grad" in preference:
        return 100
    if job.is_early_career:
        return 90 if preference else 100
    if any(_contains(text, m) for m in JUNIOR_MARKERS):
        return 80
    return 40


def company_score(job: Job, profile: UserPreferences) -> int:
    industries = list(profile.industries)
    size = (profile.company_size_preference or "").lower()
    if not industries and not size:
        return NEUTRAL_SCORE
    text = _words(f"{job.company} {job.description or ''}")
    score = 50
    score += 20 * sum(1 for industry in industries if _contains(text, industry))
    for marker in COMPANY_SIZE_MARKERS.get(size, ()):
        if _contains(text, marker):
            score += 20
            break
    return min(100, score)


def confidence_score(job: Job, profile: UserPreferences) -> float:
    """0.5 base, plus eligibility, city and career-path evidence."""
    confidence = 0.5
    if job.is_early_career:
        confidence += 0.2
    if job.city and job.city.strip().lower() in _lower_set(profile.target_cities):
        confidence += 0.15
    wanted = expand_career_paths(profile.career_path)
    if wanted is not None and category_overlap(job.categories, profile.career_path):
        confidence += 0.15
    return round(min(1.0, confidence), 2)


def explain(breakdown: ScoreBreakdown, category: int, job: Job) -> str:
    reasons = []
    if job.is_early_career:
        reasons.append("Perfect for early career")
    if breakdown.location > 80:
        reasons.append("Great location match")
    if category > 80:
        reasons.append("Career path alignment")
    if breakdown.experience > 80:
        reasons.append("Right experience level")
    if breakdown.skills > 80:
        reasons.append("Strong skill alignment")
    if breakdown.company > 80:
        reasons.append("Preferred company type")
    return ", ".join(reasons) if reasons else "Good overall match"


class RuleScorer:
    """Weighted point system over five dimensions.

    Args:
        weights: Per-dimension weights summing to 100
    """

    def __init__(self, weights: Optional[RuleWeights] = None):
        self.weights = weights or RuleWeights()

    def score_candidate(
        self,
        profile: UserPreferences,
        candidate: MatchCandidate,
    ) -> ScoredMatch:
        job = candidate.job
        category = category_score(job, profile)
        location = location_score(job, profile)
        skills = skills_score(job, profile)
        experience = experience_score(job, profile)
        company = company_score(job, profile)

        w = self.weights
        overall = round(
            (
                category * w.category
                + location * w.location
                + skills * w.skills
                + experience * w.experience
                + company * w.company
            )
            / 100
        )
        breakdown = ScoreBreakdown(
            skills=skills,
            experience=experience,
            location=location,
            company=company,
            overall=overall,
        )
        return ScoredMatch(
            candidate=candidate,
            match_score=overall,
            confidence=confidence_score(job, profile),
            match_reason=explain(breakdown, category, job),
            breakdown=breakdown,
        )

    def score(
        self,
        profile: UserPreferences,
        candidates: Sequence[MatchCandidate],
    ) -> List[ScoredMatch]:
        """Score every candidate; never drops one and never fails.

        Args:
            profile: The user's preferences
            candidates: Pre-filtered candidates

        Returns:
            One ScoredMatch per candidate, in delivery order
        """
        scored = [self.score_candidate(profile, c) for c in candidates]
        scored.sort(key=sort_key)
        return scored
