"""Unit tests for the distribution engine."""

from unittest.mock import Mock

import pytest

from jobmatch.domain.models import SendLedgerEntry
from jobmatch.matching.distribution import DistributionEngine, diversity_cap
from jobmatch.persistence import get_session
from jobmatch.persistence.exceptions import DataIntegrityError, SendQuotaExceededError
from jobmatch.persistence.repositories import SeenJobRepository, SendLedgerRepository
from tests.helpers.factories import NOW, make_job, make_scored


@pytest.fixture
def engine():
    return DistributionEngine()


class TestDiversityCap:
    """Tests for diversity_cap."""

    @pytest.mark.parametrize(
        "quota, fraction, expected",
        [(5, 0.6, 3), (15, 0.4, 6), (5, 1.0, 5), (1, 0.1, 1)],
    )
    def test_cap(self, quota, fraction, expected):
        assert diversity_cap(quota, fraction) == expected


class TestDistribute:
    """Tests for DistributionEngine.distribute."""

    def test_quota_is_respected(self, engine):
        scored = [make_scored(make_job(f"job{i}"), 90 - i) for i in range(10)]

        result = engine.distribute(scored, set(), quota=5)

        assert len(result.matches) == 5
        assert [m.match_score for m in result.matches] == [90, 89, 88, 87, 86]
        assert not result.under_quota

    def test_seen_jobs_are_never_delivered(self, engine):
        """Test seen jobs are removed and not used to pad the quota."""
        scored = [make_scored(make_job(f"job{i}"), 90 - i) for i in range(4)]

        result = engine.distribute(scored, {"job0", "job2"}, quota=5)

        assert [m.job_hash for m in result.matches] == ["job1", "job3"]
        assert result.removed_seen == 2
        assert result.under_quota

    def test_all_seen_yields_empty_result(self, engine):
        scored = [make_scored(make_job("job1"), 90)]

        result = engine.distribute(scored, {"job1"}, quota=5)

        assert result.is_empty
        assert result.removed_seen == 1

    def test_duplicate_hashes_keep_best_score(self, engine):
        job = make_job("dup")
        scored = [make_scored(job, 70), make_scored(job, 95), make_scored(make_job("other"), 80)]

        result = engine.distribute(scored, set(), quota=5)

        assert [(m.job_hash, m.match_score) for m in result.matches] == [("dup", 95), ("other", 80)]
        assert result.removed_duplicates == 1

    def test_ties_break_on_confidence_recency_then_hash(self, engine):
        scored = [
            make_scored(make_job("b", age_days=2), 80, confidence=0.7),
            make_scored(make_job("a", age_days=2), 80, confidence=0.7),
            make_scored(make_job("new", age_days=1), 80, confidence=0.7),
            make_scored(make_job("sure", age_days=5), 80, confidence=0.9),
        ]

        result = engine.distribute(scored, set(), quota=4)

        assert [m.job_hash for m in result.matches] == ["sure", "new", "a", "b"]

    def test_city_cap_spreads_matches(self, engine):
        """Test no single city takes more than the capped share when others exist."""
        scored = [make_scored(make_job(f"ber{i}"), 95 - i) for i in range(5)]
        scored += [
            make_scored(make_job(f"muc{i}", city="Munich", categories=["early-career", "data-analytics"]), 80 - i)
            for i in range(3)
        ]

        result = engine.distribute(scored, set(), quota=5, max_fraction=0.6)

        cities = [m.job.city for m in result.matches]
        assert cities.count("Berlin") == 3
        assert cities.count("Munich") == 2
        assert not result.cap_relaxed

    def test_category_cap(self, engine):
        scored = [make_scored(make_job(f"tech{i}", city=f"City{i}"), 95 - i) for i in range(4)]
        scored += [
            make_scored(
                make_job(f"data{i}", city=f"Town{i}", categories=["early-career", "data-analytics"]),
                70 - i,
            )
            for i in range(2)
        ]

        result = engine.distribute(scored, set(), quota=4, max_fraction=0.5)

        hashes = [m.job_hash for m in result.matches]
        assert hashes == ["tech0", "tech1", "data0", "data1"]

    def test_cap_is_relaxed_to_fill_quota(self, engine):
        scored = [make_scored(make_job(f"ber{i}"), 95 - i) for i in range(5)]

        result = engine.distribute(scored, set(), quota=5, max_fraction=0.4)

        assert len(result.matches) == 5
        assert result.cap_relaxed
        assert [m.match_score for m in result.matches] == [95, 94, 93, 92, 91]

    def test_zero_quota(self, engine):
        result = engine.distribute([make_scored(make_job("a"), 90)], set(), quota=0)

        assert result.is_empty


class TestRecordDelivery:
    """Tests for DistributionEngine.record_delivery."""

    def test_empty_delivery_writes_nothing(self, engine):
        seen_repo = Mock(spec=SeenJobRepository)
        ledger_repo = Mock(spec=SendLedgerRepository)

        assert engine.record_delivery("ana@example.com", "free", [], seen_repo, ledger_repo, NOW) == 0
        seen_repo.add_many.assert_not_called()
        ledger_repo.record_send.assert_not_called()

    def test_delivery_marks_seen_and_counts_send(self, engine):
        seen_repo = Mock(spec=SeenJobRepository)
        seen_repo.add_many.return_value = 2
        ledger_repo = Mock(spec=SendLedgerRepository)
        ledger_repo.record_send.return_value = SendLedgerEntry(
            user_email="ana@example.com", week_key="2026-W43", tier="free", sends_used=1, jobs_sent=2
        )
        matches = [make_scored(make_job("a"), 90), make_scored(make_job("b"), 85)]

        written = engine.record_delivery("ana@example.com", "free", matches, seen_repo, ledger_repo, NOW)

        assert written == 2
        seen_repo.add_many.assert_called_once_with("ana@example.com", ["a", "b"], NOW)
        ledger_repo.record_send.assert_called_once_with(
            "ana@example.com", "2026-W43", "free", 2, NOW, allowed=None
        )

    def test_redelivery_is_rejected(self, engine, temp_database):
        matches = [make_scored(make_job("a"), 90)]
        with get_session() as session:
            engine.record_delivery(
                "ana@example.com", "free", matches,
                SeenJobRepository(session), SendLedgerRepository(session), NOW,
            )

        with pytest.raises(DataIntegrityError):
            with get_session() as session:
                engine.record_delivery(
                    "ana@example.com", "free", matches,
                    SeenJobRepository(session), SendLedgerRepository(session), NOW,
                )

        with get_session() as session:
            assert SendLedgerRepository(session).sends_used("ana@example.com", "2026-W43", "free") == 1

    def test_delivery_past_weekly_allowance_rolls_back(self, engine, temp_database):
        with get_session() as session:
            engine.record_delivery(
                "ana@example.com", "free", [make_scored(make_job("a"), 90)],
                SeenJobRepository(session), SendLedgerRepository(session), NOW,
                sends_allowed=1,
            )

        with pytest.raises(SendQuotaExceededError):
            with get_session() as session:
                engine.record_delivery(
                    "ana@example.com", "free", [make_scored(make_job("b"), 88)],
                    SeenJobRepository(session), SendLedgerRepository(session), NOW,
                    sends_allowed=1,
                )

        with get_session() as session:
            assert SeenJobRepository(session).get_seen_hashes("ana@example.com") == {"a"}
            assert SendLedgerRepository(session).sends_used("ana@example.com", "2026-W43", "free") == 1
