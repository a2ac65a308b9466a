"""Scheduling module for periodic matching batches and embedding-queue drains."""

from .service import SchedulerService, ScheduledJob

__all__ = [
    "SchedulerService",
    "ScheduledJob",
]
