"""Scoring orchestration: primary strategy per tier, the other as fallback."""

from dataclasses import replace
from typing import Optional, Sequence

from jobmatch.config.models import ScoringStrategy, TierPolicy
from jobmatch.domain.models import MatchAlgorithm, UserPreferences
from jobmatch.logging import get_logger

from .ai_scoring import AIScorer
from .exceptions import AIScoringError
from .models import MatchCandidate, ScoringOutcome, ScoringTelemetry
from .rule_scoring import RuleScorer

logger = get_logger(__name__, component="scoring")

FALLBACK_AI_UNAVAILABLE = "ai_unavailable"
FALLBACK_INSUFFICIENT_SIGNAL = "insufficient_rule_signal"

# Matches requested from the model per quota slot; the surplus feeds the
# distribution step's diversity backfill.
AI_REQUEST_FACTOR = 2


def _ai_failure_reason(error: AIScoringError) -> str:
    return f"ai_{error.error_category}"


def ai_match_count(policy: TierPolicy) -> int:
    return policy.jobs_per_send * AI_REQUEST_FACTOR


class ScoringEngine:
    """Runs the tier's primary strategy and falls back when it fails.

    AI primary: an ``AIScoringError`` (or no configured provider) switches
    to rules, and the failure is carried into the telemetry.

    Rules primary: if the best rule score is below ``rules_min_signal_score``
    the AI strategy is consulted; its result is used only if it succeeds.

    Args:
        rule_scorer: Deterministic scorer (always available)
        ai_scorer: AI scorer, or None when no LLM provider is configured
        rules_min_signal_score: Best rule score under which rules are
            considered too weak to stand alone
    """

    def __init__(
        self,
        rule_scorer: RuleScorer,
        ai_scorer: Optional[AIScorer] = None,
        rules_min_signal_score: int = 55,
    ):
        self.rule_scorer = rule_scorer
        self.ai_scorer = ai_scorer
        self.rules_min_signal_score = rules_min_signal_score

    def score(
        self,
        profile: UserPreferences,
        candidates: Sequence[MatchCandidate],
        policy: TierPolicy,
    ) -> ScoringOutcome:
        """Score candidates with the tier's primary strategy.

        Never raises for scoring failures: the rule strategy cannot fail, so
        a non-empty candidate list always yields a non-empty outcome.

        Args:
            profile: The user's preferences
            candidates: Pre-filtered candidates, best first
            policy: Tier policy (primary strategy and quota)

        Returns:
            ScoringOutcome with matches and the telemetry for provenance
        """
        if not candidates:
            return ScoringOutcome(
                matches=[], telemetry=ScoringTelemetry(algorithm=MatchAlgorithm.RULES.value)
            )

        if ScoringStrategy(policy.primary_strategy) == ScoringStrategy.AI:
            return self._score_ai_first(profile, candidates, policy)
        return self._score_rules_first(profile, candidates, policy)

    def _score_ai_first(
        self,
        profile: UserPreferences,
        candidates: Sequence[MatchCandidate],
        policy: TierPolicy,
    ) -> ScoringOutcome:
        if self.ai_scorer is None:
            return self._score_rules(
                profile, candidates, ScoringTelemetry(
                    algorithm=MatchAlgorithm.RULES.value,
                    fallback_reason=FALLBACK_AI_UNAVAILABLE,
                )
            )

        try:
            return self.ai_scorer.score(profile, candidates, ai_match_count(policy))
        except AIScoringError as e:
            logger.warning(
                f"AI scoring failed ({e.error_category}): {e}",
                extra={
                    "event": "scoring.ai.failed",
                    "error_category": e.error_category,
                    "retry_count": e.retry_count,
                },
            )
            telemetry = ScoringTelemetry(
                algorithm=MatchAlgorithm.RULES.value,
                ai_model=e.model,
                ai_latency_ms=e.latency_ms,
                fallback_reason=_ai_failure_reason(e),
                retry_count=e.retry_count,
                error_category=e.error_category,
            )
            outcome = self._score_rules(profile, candidates, telemetry)
            logger.info(
                "Fell back to rule-based scoring",
                extra={
                    "event": "scoring.fallback",
                    "fallback_reason": telemetry.fallback_reason,
                    "match_count": len(outcome.matches),
                },
            )
            return outcome

    def _score_rules_first(
        self,
        profile: UserPreferences,
        candidates: Sequence[MatchCandidate],
        policy: TierPolicy,
    ) -> ScoringOutcome:
        outcome = self._score_rules(
            profile, candidates, ScoringTelemetry(algorithm=MatchAlgorithm.RULES.value)
        )
        best = outcome.matches[0].match_score if outcome.matches else 0
        if best >= self.rules_min_signal_score or self.ai_scorer is None:
            return outcome

        try:
            ai_outcome = self.ai_scorer.score(profile, candidates, ai_match_count(policy))
        except AIScoringError as e:
            logger.warning(
                f"AI second opinion failed ({e.error_category}); keeping rule scores",
                extra={"event": "scoring.ai.failed", "error_category": e.error_category},
            )
            return outcome

        logger.info(
            f"Rule signal too weak (best {best}), using AI scores",
            extra={"event": "scoring.fallback", "fallback_reason": FALLBACK_INSUFFICIENT_SIGNAL},
        )
        return ScoringOutcome(
            matches=ai_outcome.matches,
            telemetry=replace(ai_outcome.telemetry, fallback_reason=FALLBACK_INSUFFICIENT_SIGNAL),
        )

    def _score_rules(
        self,
        profile: UserPreferences,
        candidates: Sequence[MatchCandidate],
        telemetry: ScoringTelemetry,
    ) -> ScoringOutcome:
        matches = self.rule_scorer.score(profile, candidates)
        return ScoringOutcome(matches=matches, telemetry=telemetry)
