"""Unit tests for the scheduler service.

Tests the SchedulerService including:
- Job registration with correct configuration
- Immediate first run (next_run_time set to now)
- Prevents overlapping runs (max_instances=1)
- Start/shutdown lifecycle
- Trigger now functionality
"""

import threading
import time
from datetime import datetime
from unittest.mock import Mock

import pytest

from jobmatch.scheduler import ScheduledJob, SchedulerService
from jobmatch.scheduler.service import EMBEDDING_JOB_ID, MATCHING_JOB_ID


def make_job(func, interval_seconds=60, job_id=MATCHING_JOB_ID):
    return ScheduledJob(job_id=job_id, name=job_id, func=func, interval_seconds=interval_seconds)


class TestSchedulerService:
    """Test suite for SchedulerService."""

    def test_scheduler_initialization(self):
        """Test that scheduler initializes with its jobs and defaults."""
        shutdown_event = threading.Event()
        scheduler = SchedulerService(
            jobs=[make_job(Mock()), make_job(Mock(), 300, EMBEDDING_JOB_ID)],
            shutdown_event=shutdown_event,
        )

        assert set(scheduler.jobs) == {MATCHING_JOB_ID, EMBEDDING_JOB_ID}
        assert scheduler.shutdown_event is shutdown_event
        assert scheduler.scheduler._job_defaults["max_instances"] == 1
        assert scheduler.scheduler._job_defaults["coalesce"] is True
        assert not scheduler.is_running()

    def test_requires_a_job(self):
        with pytest.raises(ValueError, match="At least one"):
            SchedulerService(jobs=[])

    def test_start_and_shutdown(self):
        """Test scheduler start and shutdown lifecycle."""
        shutdown_event = threading.Event()
        scheduler = SchedulerService(jobs=[make_job(Mock(), 300)], shutdown_event=shutdown_event)

        scheduler.start()
        assert scheduler.is_running()

        scheduler.shutdown(wait=False)
        assert not scheduler.is_running()
        assert shutdown_event.is_set()

    def test_shutdown_without_event(self):
        scheduler = SchedulerService(jobs=[make_job(Mock())])

        scheduler.start()
        scheduler.shutdown(wait=False)

        assert not scheduler.is_running()

    def test_shutdown_before_start(self):
        shutdown_event = threading.Event()
        scheduler = SchedulerService(jobs=[make_job(Mock())], shutdown_event=shutdown_event)

        scheduler.shutdown()

        assert shutdown_event.is_set()

    def test_every_job_runs_immediately(self):
        """Test that each job's first run starts at startup."""
        matched = threading.Event()
        drained = threading.Event()
        scheduler = SchedulerService(
            jobs=[
                make_job(matched.set, 3600),
                make_job(drained.set, 3600, EMBEDDING_JOB_ID),
            ]
        )

        scheduler.start()
        try:
            assert matched.wait(timeout=3)
            assert drained.wait(timeout=3)
        finally:
            scheduler.shutdown(wait=True)

    def test_get_next_run_time(self):
        """Test getting the next scheduled run time."""
        scheduler = SchedulerService(jobs=[make_job(Mock(), 60)])

        assert scheduler.get_next_run_time() is None

        scheduler.start()
        try:
            time.sleep(0.1)
            next_run = scheduler.get_next_run_time()
            assert isinstance(next_run, datetime)
            assert scheduler.get_next_run_time(EMBEDDING_JOB_ID) is None
        finally:
            scheduler.shutdown(wait=False)

    def test_prevents_concurrent_runs(self):
        """Test that max_instances=1 keeps a slow job from overlapping itself."""
        active = []
        overlaps = []
        lock = threading.Lock()

        def slow_callable():
            with lock:
                if active:
                    overlaps.append(time.time())
                active.append(1)
            time.sleep(1.5)
            with lock:
                active.pop()

        scheduler = SchedulerService(jobs=[make_job(slow_callable, 1)])
        scheduler.start()
        time.sleep(3)
        scheduler.shutdown(wait=True)

        assert overlaps == []

    def test_callable_exceptions_dont_stop_scheduler(self):
        """Test that an exception in one run doesn't stop later runs."""
        calls = []

        def failing_callable():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("Intentional error")

        scheduler = SchedulerService(jobs=[make_job(failing_callable, 1)])
        scheduler.start()
        time.sleep(2.5)
        scheduler.shutdown(wait=True)

        assert len(calls) >= 2


class TestTriggerNow:
    """Test synchronous triggering."""

    def test_runs_job_in_current_thread(self):
        func = Mock(return_value="result")
        scheduler = SchedulerService(jobs=[make_job(func, 3600)])

        assert scheduler.trigger_now() == "result"
        func.assert_called_once_with()

    def test_runs_named_job(self):
        match = Mock()
        drain = Mock()
        scheduler = SchedulerService(
            jobs=[make_job(match), make_job(drain, job_id=EMBEDDING_JOB_ID)]
        )

        scheduler.trigger_now(EMBEDDING_JOB_ID)

        drain.assert_called_once_with()
        match.assert_not_called()

    def test_unknown_job(self):
        scheduler = SchedulerService(jobs=[make_job(Mock())])

        with pytest.raises(KeyError):
            scheduler.trigger_now("nope")
