"""Unit tests for scoring orchestration and fallback."""

from unittest.mock import Mock

import pytest

from jobmatch.config.models import AIConfig, ScoringConfig, TierPolicy
from jobmatch.matching.ai_scoring import AIScorer
from jobmatch.matching.distribution import DistributionEngine
from jobmatch.matching.exceptions import AIScoringError
from jobmatch.matching.models import ScoringOutcome, ScoringTelemetry
from jobmatch.matching.rule_scoring import RuleScorer
from jobmatch.matching.scoring import (
    FALLBACK_AI_UNAVAILABLE,
    FALLBACK_INSUFFICIENT_SIGNAL,
    ScoringEngine,
)
from tests.helpers.factories import make_candidate, make_job, make_scored, make_user
from tests.helpers.fakes import FakeLLMProvider, scoring_payload

AI_POLICY = TierPolicy(jobs_per_send=5, sends_per_week=1, primary_strategy="ai")
RULES_POLICY = TierPolicy(jobs_per_send=5, sends_per_week=1, primary_strategy="rules")


def _ai_outcome(candidates):
    return ScoringOutcome(
        matches=[make_scored(c.job, 92 - i) for i, c in enumerate(candidates)],
        telemetry=ScoringTelemetry(
            algorithm="ai", ai_model="gpt-4o-mini", prompt_version="v3-free", ai_latency_ms=120
        ),
    )


@pytest.fixture
def candidates():
    return [make_candidate(make_job(f"job{i}")) for i in range(3)]


@pytest.fixture
def ai_scorer():
    return Mock(spec=AIScorer)


class TestAIPrimary:
    """Tests for tiers whose primary strategy is AI."""

    def test_ai_success(self, ai_scorer, candidates):
        ai_scorer.score.return_value = _ai_outcome(candidates)
        engine = ScoringEngine(RuleScorer(), ai_scorer)

        outcome = engine.score(make_user(), candidates, AI_POLICY)

        assert outcome.algorithm == "ai"
        assert outcome.telemetry.fallback_reason is None
        ai_scorer.score.assert_called_once_with(make_user(), candidates, 10)

    @pytest.mark.parametrize("category", ["timeout", "schema_violation", "provider_error"])
    def test_ai_failure_falls_back_to_rules(self, ai_scorer, candidates, category):
        """Test every AI failure category yields rule scores with the reason recorded."""
        ai_scorer.score.side_effect = AIScoringError(
            "boom", category, retry_count=1, latency_ms=900, model="gpt-4o-mini"
        )
        engine = ScoringEngine(RuleScorer(), ai_scorer)

        outcome = engine.score(make_user(), candidates, AI_POLICY)

        assert outcome.algorithm == "rules"
        assert len(outcome.matches) == len(candidates)
        telemetry = outcome.telemetry
        assert telemetry.error_category == category
        assert telemetry.fallback_reason == f"ai_{category}"
        assert telemetry.retry_count == 1
        assert telemetry.ai_latency_ms == 900
        assert telemetry.ai_model == "gpt-4o-mini"

    def test_no_ai_provider_uses_rules(self, candidates):
        engine = ScoringEngine(RuleScorer(), ai_scorer=None)

        outcome = engine.score(make_user(), candidates, AI_POLICY)

        assert outcome.algorithm == "rules"
        assert outcome.telemetry.fallback_reason == FALLBACK_AI_UNAVAILABLE
        assert outcome.telemetry.error_category is None

    def test_empty_candidates(self, ai_scorer):
        engine = ScoringEngine(RuleScorer(), ai_scorer)

        outcome = engine.score(make_user(), [], AI_POLICY)

        assert outcome.matches == []
        ai_scorer.score.assert_not_called()


class TestRulesPrimary:
    """Tests for tiers whose primary strategy is rules."""

    def test_strong_rule_signal_skips_ai(self, ai_scorer, candidates):
        engine = ScoringEngine(RuleScorer(), ai_scorer, rules_min_signal_score=55)

        outcome = engine.score(make_user(), candidates, RULES_POLICY)

        assert outcome.algorithm == "rules"
        assert outcome.telemetry.fallback_reason is None
        ai_scorer.score.assert_not_called()

    def test_weak_rule_signal_consults_ai(self, ai_scorer):
        weak = [
            make_candidate(
                make_job(f"w{i}", title="Senior Analyst", city="Paris", country="France",
                         categories=["early-career", "finance-investment"])
            )
            for i in range(2)
        ]
        ai_scorer.score.return_value = _ai_outcome(weak)
        engine = ScoringEngine(RuleScorer(), ai_scorer, rules_min_signal_score=95)

        outcome = engine.score(make_user(), weak, RULES_POLICY)

        assert outcome.algorithm == "ai"
        assert outcome.telemetry.fallback_reason == FALLBACK_INSUFFICIENT_SIGNAL
        assert outcome.telemetry.ai_model == "gpt-4o-mini"

    def test_failed_second_opinion_keeps_rules(self, ai_scorer, candidates):
        ai_scorer.score.side_effect = AIScoringError("down", "provider_error")
        engine = ScoringEngine(RuleScorer(), ai_scorer, rules_min_signal_score=100)

        outcome = engine.score(make_user(), candidates, RULES_POLICY)

        assert outcome.algorithm == "rules"
        assert outcome.telemetry.fallback_reason is None
        assert len(outcome.matches) == 3


class TestAIResultsFeedDiversity:
    """AI scoring returns more than a quota so the diversity cap can bite."""

    def test_surplus_ai_matches_let_distribution_spread_cities(self):
        candidates = [
            make_candidate(
                make_job(
                    f"job{i}",
                    city="Berlin" if i <= 6 else "Hamburg",
                    categories=["early-career", "data-analytics" if i % 2 else "tech-transformation"],
                )
            )
            for i in range(1, 11)
        ]
        ai_scorer = AIScorer(
            FakeLLMProvider(payload=scoring_payload(10)), AIConfig(), ScoringConfig()
        )
        try:
            outcome = ScoringEngine(RuleScorer(), ai_scorer).score(
                make_user(target_cities=["Berlin", "Hamburg"]), candidates, AI_POLICY
            )
        finally:
            ai_scorer.close()

        result = DistributionEngine().distribute(outcome.matches, set(), 5, 0.6)

        assert outcome.algorithm == "ai"
        assert len(outcome.matches) == 10
        assert [m.job_hash for m in result.matches] == ["job1", "job2", "job3", "job7", "job8"]
        assert result.cap_relaxed is False
