"""End-to-end matching scenarios.

Runs the full per-user pipeline (pre-filter, scoring, distribution and
provenance) against an in-memory database:

- Sparse pools relax constraints and still deliver what exists
- Seen jobs are never delivered twice, even when nothing else is left
- A hung AI provider falls back to rules within the timeout
- The YAML sample pool produces tier-sized, provenance-complete deliveries
"""

import threading
from pathlib import Path

import pytest

from jobmatch.config.models import AppConfig
from jobmatch.matching.provenance import ProvenanceRecorder
from jobmatch.persistence import get_session
from jobmatch.persistence.repositories import (
    JobRepository,
    MatchRepository,
    SeenJobRepository,
    UserRepository,
)
from jobmatch.pipeline import MatchingPipeline
from jobmatch.providers.factory import Providers
from tests.helpers.factories import NOW, make_job, make_user
from tests.helpers.fakes import FakeLLMProvider, scoring_payload
from tests.helpers.fixture_pool import load_fixture_pool

pytestmark = pytest.mark.integration

FIXTURE_PATH = Path(__file__).parent.parent / "fixtures" / "sample_pool.yaml"


@pytest.fixture
def sparse_pool():
    """Three early-career Berlin tech jobs among fifty that can never match."""
    matching = [make_job(f"match{i}", age_days=i + 1) for i in range(3)]
    experienced = [
        make_job(
            f"senior{i}",
            title="Senior Software Engineer",
            categories=["experienced", "tech-transformation"],
        )
        for i in range(25)
    ]
    inactive = [make_job(f"closed{i}", is_active=False) for i in range(25)]
    return matching + experienced + inactive


def _provenance_for(user_email):
    with get_session() as session:
        repo = MatchRepository(session)
        return [(m, repo.get_provenance(m.id)) for m in repo.get_for_user(user_email)]


class TestSparsePool:
    """A user whose strict filters leave fewer candidates than the quota."""

    def test_delivers_every_eligible_job_with_provenance(self, temp_database, sparse_pool):
        user = make_user()

        result = MatchingPipeline(AppConfig()).run_for_user(user, sparse_pool, now=NOW)

        assert result.match_count == 3
        assert result.status == "low_match"
        assert result.relaxation_level > 0
        assert result.accuracy_score < 100
        rows = _provenance_for(user.email)
        assert sorted(m.job_hash for m, _ in rows) == ["match0", "match1", "match2"]
        assert all(p is not None for _, p in rows)
        assert all(m.accuracy_score == result.accuracy_score for m, _ in rows)

    def test_everything_seen_returns_zero_matches(self, temp_database, sparse_pool):
        user = make_user()
        with get_session() as session:
            SeenJobRepository(session).add_many(user.email, ["match0", "match1", "match2"], NOW)

        result = MatchingPipeline(AppConfig()).run_for_user(user, sparse_pool, now=NOW)

        assert result.status == "zero_match"
        assert result.match_count == 0
        assert _provenance_for(user.email) == []


class TestAIFallback:
    """AI-first scoring under provider failure."""

    def test_hung_provider_falls_back_to_rules(self, temp_database, sparse_pool):
        release = threading.Event()
        provider = FakeLLMProvider(payload=scoring_payload(3), block=release)
        config = AppConfig(scoring={"ai_timeout": "1s", "ai_max_retries": 2})
        pipeline = MatchingPipeline(config, Providers(llm=provider))
        user = make_user()

        try:
            result = pipeline.run_for_user(user, sparse_pool, now=NOW)
        finally:
            release.set()

        assert result.algorithm == "rules"
        assert result.error_category == "timeout"
        assert result.match_count == 3
        assert provider.call_count == 1
        for _, provenance in _provenance_for(user.email):
            assert provenance.match_algorithm == "rules"
            assert provenance.error_category == "timeout"
            assert provenance.fallback_reason == "ai_timeout"
            assert provenance.retry_count == 0

    def test_partial_ai_response_keeps_valid_matches(self, temp_database, sparse_pool):
        payload = {
            "matches": [
                {"job_index": 1, "match_score": 91, "match_reason": "Berlin graduate role"},
                {"job_index": 2, "match_score": 150, "match_reason": "Out of range"},
                {"job_index": 3, "match_score": 84, "match_reason": "Python team"},
            ]
        }
        pipeline = MatchingPipeline(AppConfig(), Providers(llm=FakeLLMProvider(payload=payload)))

        result = pipeline.run_for_user(make_user(), sparse_pool, now=NOW)

        assert result.algorithm == "ai"
        assert result.match_count == 2


class TestSamplePool:
    """The YAML sample pool through the batch driver."""

    def test_batch_over_sample_pool(self, temp_database):
        users, jobs = load_fixture_pool(FIXTURE_PATH, NOW)
        with get_session() as session:
            for user in users:
                UserRepository(session).upsert(user)
            for job in jobs:
                JobRepository(session).upsert(job)

        result = MatchingPipeline(AppConfig()).run_batch(now=NOW)

        assert result.users_processed == 2
        assert not result.had_errors
        by_email = {r.user_email: r for r in result.user_results}
        assert 0 < by_email["ana@example.com"].match_count <= 5
        assert 0 < by_email["ben@example.com"].match_count <= 15

        with get_session() as session:
            ProvenanceRecorder(MatchRepository(session)).verify_completeness()
            delivered = SeenJobRepository(session).get_seen_hashes("ana@example.com")
        senior = [job.job_hash for job in jobs if job.title == "Senior Data Engineer"]
        assert not delivered & set(senior)
