"""Embedding work-queue worker.

Each batch runs an explicit claim -> process -> mark cycle:

1. claim up to ``batch_size`` pending items in their own transaction, so the
   claim is visible to other workers before any provider call is made;
2. embed the claimed jobs with one provider request;
3. mark every claimed item processed, or failed-with-retry.

The worker does not know what triggers it (scheduler, CLI or a test).
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, ContextManager, Dict, List, Optional

from sqlalchemy.orm import Session

from jobmatch.config.models import EmbeddingConfig
from jobmatch.logging import get_logger
from jobmatch.persistence import (
    EmbeddingQueueRepository,
    EmbeddingRepository,
    JobRepository,
    get_session,
)
from jobmatch.providers.base import EmbeddingProvider
from jobmatch.utils.timestamps import utc_now

from .service import EmbeddingService

logger = get_logger(__name__, component="embedding_queue")

SessionFactory = Callable[[], ContextManager[Session]]


@dataclass
class QueueRunResult:
    """Outcome of one or more claim/process/mark cycles."""

    batches: int = 0
    claimed: int = 0
    processed: int = 0
    retried: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def merge(self, other: "QueueRunResult") -> None:
        self.batches += other.batches
        self.claimed += other.claimed
        self.processed += other.processed
        self.retried += other.retried
        self.failed += other.failed
        self.errors.extend(other.errors)

    def to_dict(self) -> Dict[str, int]:
        return {
            "batches": self.batches,
            "claimed": self.claimed,
            "processed": self.processed,
            "retried": self.retried,
            "failed": self.failed,
        }


class EmbeddingQueueWorker:
    """Drains the embedding queue in bounded batches.

    Args:
        provider: Embedding client (None marks every claimed item for retry)
        config: Batch size, attempt limit, dimension and stale-claim window
        session_factory: Context manager yielding a transactional session
    """

    def __init__(
        self,
        provider: Optional[EmbeddingProvider],
        config: EmbeddingConfig,
        session_factory: SessionFactory = get_session,
    ):
        self.provider = provider
        self.config = config
        self.session_factory = session_factory

    def run_once(self, now: Optional[datetime] = None) -> QueueRunResult:
        """Claim, process and mark one batch."""
        now = now or utc_now()
        result = QueueRunResult()

        with self.session_factory() as session:
            claimed = EmbeddingQueueRepository(session).claim_batch(self.config.batch_size, now)

        if not claimed:
            return result

        result.batches = 1
        result.claimed = len(claimed)
        hashes = [item.job_hash for item in claimed]
        logger.info(
            f"Claimed {len(claimed)} embedding queue items",
            extra={"event": "embedding.queue.claimed", "count": len(claimed)},
        )

        with self.session_factory() as session:
            queue = EmbeddingQueueRepository(session)
            jobs = JobRepository(session).get_by_hashes(hashes)
            service = EmbeddingService(
                self.provider, EmbeddingRepository(session), self.config.dimension
            )

            for job_hash in hashes:
                if job_hash not in jobs:
                    queue.mark_failed(
                        job_hash, "job not found", self.config.max_attempts, now, permanent=True
                    )
                    result.failed += 1
                    result.errors.append(f"{job_hash}: job not found")

            vectors = service.embed_jobs([jobs[h] for h in hashes if h in jobs])
            for job_hash, vector in vectors.items():
                if vector is not None:
                    queue.mark_processed(job_hash, now)
                    result.processed += 1
                    continue
                status = queue.mark_failed(
                    job_hash, "embedding unavailable", self.config.max_attempts, now
                )
                if status == "failed":
                    result.failed += 1
                    result.errors.append(f"{job_hash}: attempts exhausted")
                else:
                    result.retried += 1

        logger.info(
            "Embedding batch finished",
            extra={"event": "embedding.queue.processed", **result.to_dict()},
        )
        if result.failed:
            logger.warning(
                f"{result.failed} embedding queue items failed permanently",
                extra={"event": "embedding.queue.failed", "failed": result.failed},
            )
        return result

    def drain(self, max_batches: int = 50, now: Optional[datetime] = None) -> QueueRunResult:
        """Run batches until the queue is empty or ``max_batches`` is reached.

        Stale claims are released first. A batch that only produced retries
        stops the drain so a failing provider is not hammered.
        """
        total = QueueRunResult()
        self.release_stale_claims(now)
        for _ in range(max_batches):
            batch = self.run_once(now)
            total.merge(batch)
            if batch.claimed == 0 or (batch.processed == 0 and batch.retried > 0):
                break
        return total

    def release_stale_claims(self, now: Optional[datetime] = None) -> int:
        """Return items stuck in progress (e.g. a crashed worker) to pending."""
        now = now or utc_now()
        cutoff = now - timedelta(seconds=self.config.stale_claim_after_seconds)
        with self.session_factory() as session:
            released = EmbeddingQueueRepository(session).release_stale_claims(cutoff, now)
        if released:
            logger.warning(
                f"Released {released} stale embedding claims",
                extra={"event": "embedding.queue.released", "count": released},
            )
        return released

    def enqueue_missing(self, now: Optional[datetime] = None) -> int:
        """Queue every active job that has no stored embedding."""
        with self.session_factory() as session:
            hashes = JobRepository(session).get_active_hashes_without_embeddings()
            queued = EmbeddingQueueRepository(session).enqueue(hashes, now)
        logger.info(
            f"Queued {queued} jobs missing embeddings",
            extra={"event": "embedding.queue.backfilled", "count": queued},
        )
        return queued
