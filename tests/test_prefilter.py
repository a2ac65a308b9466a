"""Unit tests for candidate selection and relaxation."""

import random

import pytest

from jobmatch.config.models import MatchingConfig
from jobmatch.matching.models import accuracy_score
from jobmatch.matching.prefilter import CandidateSelector
from tests.helpers.factories import NOW, make_job, make_user


@pytest.fixture
def selector():
    return CandidateSelector(MatchingConfig(min_candidates=3, max_candidates=10))


class TestStrictSelection:
    """Tests for the strict pass."""

    def test_enough_strict_candidates_means_no_relaxation(self, selector):
        """Test relaxation level stays at zero when strict filters suffice."""
        jobs = [make_job(f"job{i}") for i in range(4)]

        result = selector.select_candidates(make_user(), jobs, now=NOW)

        assert result.relaxation_level == 0
        assert result.applied_steps == []
        assert result.strict_count == 4
        assert result.accuracy_score == 100
        assert {c.relaxation_level for c in result.candidates} == {0}

    def test_hard_filters_are_never_relaxed(self, selector):
        """Test inactive and non-early-career jobs never become candidates."""
        jobs = [
            make_job("good"),
            make_job("inactive", is_active=False),
            make_job("closed", status="closed"),
            make_job("senior", title="Senior Engineer", categories=["tech-transformation"]),
        ]

        result = selector.select_candidates(make_user(), jobs, now=NOW)

        assert [c.job_hash for c in result.candidates] == ["good"]
        assert result.relaxation_level == 8

    def test_internship_flag_counts_as_early_career(self, selector):
        jobs = [make_job("intern", categories=["tech-transformation"], is_internship=True)]

        result = selector.select_candidates(make_user(), jobs, now=NOW)

        assert [c.job_hash for c in result.candidates] == ["intern"]

    def test_city_match_is_case_insensitive(self, selector):
        jobs = [make_job(f"job{i}", city="BERLIN") for i in range(3)]

        result = selector.select_candidates(make_user(target_cities=["berlin"]), jobs, now=NOW)

        assert result.relaxation_level == 0
        assert len(result.candidates) == 3

    def test_jobs_without_posting_date_pass_freshness(self, selector):
        jobs = [make_job(f"job{i}", age_days=None) for i in range(3)]

        result = selector.select_candidates(make_user(), jobs, now=NOW)

        assert result.relaxation_level == 0

    def test_unknown_career_path_disables_category_filter(self, selector):
        jobs = [make_job(f"job{i}", categories=["early-career", "marketing-growth"]) for i in range(3)]

        result = selector.select_candidates(make_user(career_path=["astronaut"]), jobs, now=NOW)

        assert result.relaxation_level == 0
        assert len(result.candidates) == 3


class TestRelaxation:
    """Tests for the ordered relaxation protocol."""

    def test_expand_to_country_first(self, selector):
        """Test a same-country city is admitted at the first relaxation level."""
        jobs = [
            make_job("berlin1"),
            make_job("munich1", city="Munich"),
            make_job("munich2", city="Munich"),
        ]

        result = selector.select_candidates(make_user(), jobs, now=NOW)

        assert result.applied_steps == ["expand_to_country"]
        assert result.relaxation_level == 2
        levels = {c.job_hash: c.relaxation_level for c in result.candidates}
        assert levels == {"berlin1": 0, "munich1": 2, "munich2": 2}
        assert result.candidates[0].job_hash == "berlin1"

    def test_drop_city_after_country(self, selector):
        jobs = [make_job(f"paris{i}", city="Paris", country="France") for i in range(3)]

        result = selector.select_candidates(make_user(), jobs, now=NOW)

        assert result.applied_steps == ["expand_to_country", "drop_city"]
        assert result.relaxation_level == 4
        assert result.accuracy_score == 88

    def test_widen_freshness(self, selector):
        jobs = [make_job(f"old{i}", age_days=60) for i in range(3)]

        result = selector.select_candidates(make_user(), jobs, now=NOW)

        assert result.applied_steps == ["expand_to_country", "drop_city", "widen_freshness"]
        assert result.relaxation_level == 6

    def test_drop_category_last(self, selector):
        jobs = [make_job(f"fin{i}", categories=["early-career", "finance-investment"]) for i in range(3)]

        result = selector.select_candidates(make_user(), jobs, now=NOW)

        assert result.applied_steps[-1] == "drop_category"
        assert result.relaxation_level == 8
        assert result.accuracy_score == 76
        assert len(result.candidates) == 3

    def test_exhausted_relaxation_returns_what_survived(self, selector):
        """Test an empty pool ends at the maximum level without raising."""
        result = selector.select_candidates(make_user(), [], now=NOW)

        assert result.candidates == []
        assert result.relaxation_level == 8

    def test_configured_step_order_is_honoured(self):
        selector = CandidateSelector(
            MatchingConfig(min_candidates=1, relaxation_steps=["drop_category", "drop_city"])
        )
        jobs = [make_job("fin", categories=["early-career", "finance-investment"])]

        result = selector.select_candidates(make_user(), jobs, now=NOW)

        assert result.applied_steps == ["drop_category"]
        assert result.relaxation_level == 2

    def test_accuracy_decreases_with_relaxation(self):
        """Test accuracy is non-increasing in relaxation level and floored at 70."""
        scores = [accuracy_score(level) for level in range(0, 20)]

        assert scores == sorted(scores, reverse=True)
        assert scores[0] == 100
        assert min(scores) == 70


class TestRanking:
    """Tests for candidate ordering and limits."""

    def test_output_is_deterministic(self, selector):
        """Test the same pool in any order yields the same candidates."""
        jobs = [make_job(f"job{i}", age_days=i + 1) for i in range(8)]
        shuffled = list(jobs)
        random.Random(7).shuffle(shuffled)
        user = make_user()

        first = selector.select_candidates(user, jobs, now=NOW)
        second = selector.select_candidates(user, shuffled, now=NOW)

        assert [c.job_hash for c in first.candidates] == [c.job_hash for c in second.candidates]

    def test_similarity_orders_candidates_within_a_level(self, selector):
        jobs = [make_job("a"), make_job("b"), make_job("c")]
        similarities = {"a": 0.1, "b": 0.9, "c": 0.5}

        result = selector.select_candidates(make_user(), jobs, similarities, now=NOW)

        assert [c.job_hash for c in result.candidates] == ["b", "c", "a"]
        assert result.semantic_used is True
        assert result.candidates[0].similarity == 0.9

    def test_newer_jobs_rank_first_without_similarity(self, selector):
        jobs = [make_job("older", age_days=20), make_job("newer", age_days=1), make_job("mid", age_days=10)]

        result = selector.select_candidates(make_user(), jobs, now=NOW)

        assert [c.job_hash for c in result.candidates] == ["newer", "mid", "older"]
        assert result.semantic_used is False

    def test_max_candidates_limit(self):
        selector = CandidateSelector(MatchingConfig(min_candidates=1, max_candidates=5))
        jobs = [make_job(f"job{i}") for i in range(12)]

        result = selector.select_candidates(make_user(), jobs, now=NOW)

        assert len(result.candidates) == 5

    def test_prefilter_score_rewards_city_category_and_freshness(self, selector):
        user = make_user()
        local = selector.prefilter_score(make_job("local", age_days=0), user, NOW)
        remote = selector.prefilter_score(
            make_job("remote", city="Paris", work_environment="remote", age_days=0), user, NOW
        )
        elsewhere = selector.prefilter_score(make_job("far", city="Paris", age_days=0), user, NOW)

        assert local == 100.0
        assert remote == 80.0
        assert elsewhere == 60.0
