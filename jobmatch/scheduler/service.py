"""Scheduler service for periodic matching and embedding work."""

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from jobmatch.logging import get_logger

logger = get_logger(__name__, component="scheduler")

MATCHING_JOB_ID = "matching-batch"
EMBEDDING_JOB_ID = "embedding-queue"


@dataclass(frozen=True)
class ScheduledJob:
    """A callable run at a fixed interval."""

    job_id: str
    name: str
    func: Callable[[], object]
    interval_seconds: int


class SchedulerService:
    """
    Wraps APScheduler to trigger matching batches and queue drains at intervals.

    Uses BackgroundScheduler to run jobs in a separate thread while
    allowing the main thread to handle signals and coordinate shutdown.
    Each job has ``max_instances=1`` so a slow batch is never overlapped by
    its own next run.
    """

    def __init__(
        self,
        jobs: List[ScheduledJob],
        shutdown_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the scheduler service.

        Args:
            jobs: Jobs to register (matching batch, embedding drain, ...)
            shutdown_event: Optional event to set on shutdown for coordination
        """
        if not jobs:
            raise ValueError("At least one scheduled job is required")
        self.jobs: Dict[str, ScheduledJob] = {job.job_id: job for job in jobs}
        self.shutdown_event = shutdown_event

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
            },
            timezone=timezone.utc,
        )

    def start(self) -> None:
        """
        Start the scheduler and register every job.

        Each job's first run executes immediately after startup; subsequent
        runs follow its interval.
        """
        next_run = datetime.now(timezone.utc)
        for job in self.jobs.values():
            self.scheduler.add_job(
                func=job.func,
                trigger=IntervalTrigger(seconds=job.interval_seconds, timezone=timezone.utc),
                id=job.job_id,
                name=job.name,
                replace_existing=True,
                next_run_time=next_run,
                misfire_grace_time=job.interval_seconds,
            )

        self.scheduler.start()

        logger.info(
            f"Scheduler started with {len(self.jobs)} jobs",
            extra={
                "event": "scheduler.started",
                "jobs": {job_id: job.interval_seconds for job_id, job in self.jobs.items()},
                "next_run_time": next_run.isoformat(),
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """
        Shutdown the scheduler gracefully.

        Args:
            wait: If True, wait for running jobs to complete before returning
        """
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def trigger_now(self, job_id: str = MATCHING_JOB_ID) -> object:
        """
        Run one job synchronously in the current thread.

        Raises:
            KeyError: If no job with ``job_id`` is registered
        """
        job = self.jobs[job_id]
        logger.info(
            f"Triggering immediate run: {job.name}",
            extra={"event": "scheduler.trigger_now", "job_id": job_id},
        )
        return job.func()

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self, job_id: str = MATCHING_JOB_ID) -> Optional[datetime]:
        """
        Get the next scheduled run time of a job.

        Returns:
            Next run time as a datetime, or None if not scheduled
        """
        job = self.scheduler.get_job(job_id)
        return job.next_run_time if job else None
