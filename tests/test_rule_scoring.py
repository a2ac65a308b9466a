"""Unit tests for deterministic rule-based scoring."""

from jobmatch.config.models import RuleWeights
from jobmatch.matching.rule_scoring import (
    RuleScorer,
    category_score,
    company_score,
    experience_score,
    location_score,
    skills_score,
)
from tests.helpers.factories import make_candidate, make_job, make_user


class TestDimensionScores:
    """Tests for the individual rule dimensions."""

    def test_category_score(self):
        user = make_user()
        assert category_score(make_job("a"), user) == 100
        assert category_score(make_job("b", categories=["finance-investment"]), user) == 30
        assert category_score(make_job("c"), make_user(career_path=["unsure"])) == 70

    def test_location_score(self):
        user = make_user()
        assert location_score(make_job("a"), user) == 100
        assert location_score(make_job("b", city="Paris", work_environment="Remote"), user) == 90
        assert location_score(make_job("c", city="Paris"), user) == 30

    def test_skills_score_counts_whole_word_hits(self):
        user = make_user(skills=["Python", "SQL"], roles_selected=["Data Analyst"])
        job = make_job("a", title="Graduate Data Analyst", description="Python and SQL daily")

        assert skills_score(job, user) == 95
        assert skills_score(make_job("b", description="Pythonic"), user) == 50
        assert skills_score(job, make_user()) == 70

    def test_senior_titles_score_low(self):
        user = make_user()
        assert experience_score(make_job("a", title="Senior Engineer"), user) == 20
        assert experience_score(make_job("b", title="Head of Data"), user) == 20

    def test_manager_is_not_a_senior_marker(self):
        assert experience_score(make_job("a", title="Graduate Product Manager"), make_user()) == 100

    def test_internship_preference(self):
        user = make_user(entry_level_preference="Internship")
        intern = make_job("a", title="Marketing Intern", is_internship=True)
        graduate = make_job("b")

        assert experience_score(intern, user) == 100
        assert experience_score(graduate, user) == 90

    def test_company_score(self):
        user = make_user(industries=["fintech"], company_size_preference="startup")
        job = make_job("a", description="A seed-stage fintech startup")

        assert company_score(job, user) == 90
        assert company_score(make_job("b"), user) == 50
        assert company_score(job, make_user()) == 70


class TestRuleScorer:
    """Tests for RuleScorer."""

    def test_strong_match(self):
        """Test a local early-career tech job scores high with full confidence."""
        scored = RuleScorer().score_candidate(make_user(), make_candidate(make_job("a")))

        assert scored.match_score == 90
        assert scored.confidence == 1.0
        assert "Perfect for early career" in scored.match_reason
        assert "Great location match" in scored.match_reason
        assert scored.breakdown.overall == scored.match_score

    def test_weak_match(self):
        job = make_job("a", title="Senior Analyst", city="Paris", country="France",
                       categories=["finance-investment"])

        scored = RuleScorer().score_candidate(make_user(), make_candidate(job))

        assert scored.match_score < 55
        assert scored.confidence == 0.5
        assert scored.match_reason == "Good overall match"

    def test_scores_are_bounded(self):
        jobs = [
            make_job("a"),
            make_job("b", title="Director", city=None, country=None, categories=[]),
        ]
        for scored in RuleScorer().score(make_user(), [make_candidate(j) for j in jobs]):
            assert 0 <= scored.match_score <= 100
            assert 0.0 <= scored.confidence <= 1.0
            assert scored.match_reason

    def test_scoring_is_idempotent(self):
        """Test identical inputs produce identical scores and order."""
        user = make_user(skills=["python"])
        candidates = [make_candidate(make_job(f"job{i}", age_days=i + 1)) for i in range(5)]
        scorer = RuleScorer()

        first = scorer.score(user, candidates)
        second = scorer.score(user, list(reversed(candidates)))

        assert first == second

    def test_every_candidate_is_scored(self):
        candidates = [make_candidate(make_job(f"job{i}")) for i in range(7)]

        assert len(RuleScorer().score(make_user(), candidates)) == 7

    def test_weights_change_the_composite(self):
        job = make_job("a", city="Paris")
        location_heavy = RuleWeights(category=10, location=70, skills=10, experience=5, company=5)

        default = RuleScorer().score_candidate(make_user(), make_candidate(job))
        weighted = RuleScorer(location_heavy).score_candidate(make_user(), make_candidate(job))

        assert weighted.match_score < default.match_score

    def test_score_ignores_other_candidates(self):
        user = make_user()
        munich = make_candidate(make_job("munich", city="Munich"))
        others = [
            make_candidate(make_job("berlin")),
            make_candidate(make_job("hamburg", city="Hamburg")),
        ]
        scorer = RuleScorer()

        alone = scorer.score(user, [munich])[0]
        together = next(s for s in scorer.score(user, [munich] + others) if s.candidate is munich)

        assert alone.match_score == together.match_score
        assert alone.breakdown == together.breakdown
        assert alone.breakdown.location == 30
