"""Embedding generation, caching and the embedding work queue."""

from .service import (
    JOB_SUBJECT,
    USER_SUBJECT,
    EmbeddingService,
    EmbeddingStore,
    InMemoryEmbeddingStore,
    build_job_text,
    build_profile_text,
)
from .worker import EmbeddingQueueWorker, QueueRunResult

__all__ = [
    "EmbeddingService",
    "EmbeddingStore",
    "InMemoryEmbeddingStore",
    "EmbeddingQueueWorker",
    "QueueRunResult",
    "build_job_text",
    "build_profile_text",
    "JOB_SUBJECT",
    "USER_SUBJECT",
]
