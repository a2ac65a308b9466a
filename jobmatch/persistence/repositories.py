"""Data access layer (repositories) for persistence operations.

Repositories wrap a SQLAlchemy session, speak domain models, and translate
SQLAlchemy failures into the persistence exception hierarchy.
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from jobmatch.domain.models import (
    EmbeddingQueueItem,
    Job,
    Match,
    MatchProvenance,
    QueueStatus,
    SendLedgerEntry,
    UserPreferences,
)
from jobmatch.utils.timestamps import format_timestamp, utc_now

from .exceptions import (
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
    SendQuotaExceededError,
)
from .schema import (
    EmbeddingModel,
    EmbeddingQueueModel,
    JobModel,
    MatchModel,
    MatchProvenanceModel,
    SeenJobModel,
    SendLedgerModel,
    UserModel,
)

logger = logging.getLogger(__name__)

# Keeps IN (...) lists below SQLite's bound-parameter limit.
_IN_CHUNK = 500


def _chunks(values: Sequence[str], size: int = _IN_CHUNK) -> Iterable[Sequence[str]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


class JobRepository:
    """Read access to the job pool, plus the upsert used by ingestion."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_hash(self, job_hash: str) -> Optional[Job]:
        """Retrieve a job by job_hash, or None."""
        try:
            model = self.session.get(JobModel, job_hash)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving job {job_hash}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve job: {e}") from e

    def get_by_hashes(self, job_hashes: Iterable[str]) -> Dict[str, Job]:
        """Retrieve several jobs keyed by job_hash; unknown hashes are omitted."""
        hashes = sorted(set(job_hashes))
        found: Dict[str, Job] = {}
        try:
            for chunk in _chunks(hashes):
                stmt = select(JobModel).where(JobModel.job_hash.in_(chunk))
                for model in self.session.execute(stmt).scalars():
                    found[model.job_hash] = model.to_domain()
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving {len(hashes)} jobs: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve jobs: {e}") from e
        return found

    def get_active_jobs(self, posted_since: Optional[datetime] = None) -> List[Job]:
        """Jobs that are matchable right now (``is_active`` and status ``active``).

        Args:
            posted_since: Optional lower bound on created_at

        Returns:
            Jobs ordered newest first, then by job_hash
        """
        try:
            stmt = select(JobModel).where(
                JobModel.is_active.is_(True), JobModel.status == "active"
            )
            if posted_since is not None:
                stmt = stmt.where(JobModel.created_at >= format_timestamp(posted_since))
            stmt = stmt.order_by(JobModel.created_at.desc(), JobModel.job_hash)
            return [model.to_domain() for model in self.session.execute(stmt).scalars()]
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving active jobs: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve active jobs: {e}") from e

    def get_active_hashes_without_embeddings(self) -> List[str]:
        """Active job hashes that have no stored embedding."""
        try:
            stmt = (
                select(JobModel.job_hash)
                .outerjoin(
                    EmbeddingModel,
                    (EmbeddingModel.subject_type == "job")
                    & (EmbeddingModel.subject_id == JobModel.job_hash),
                )
                .where(
                    JobModel.is_active.is_(True),
                    JobModel.status == "active",
                    EmbeddingModel.subject_id.is_(None),
                )
                .order_by(JobModel.job_hash)
            )
            return list(self.session.execute(stmt).scalars())
        except SQLAlchemyError as e:
            logger.error(f"Error finding jobs without embeddings: {e}", exc_info=True)
            raise PersistenceError(f"Failed to query embedding coverage: {e}") from e

    def upsert(self, job: Job) -> Job:
        """Insert or replace a job (ingestion stage only)."""
        try:
            existing = self.session.get(JobModel, job.job_hash)
            if existing:
                existing.apply(job)
                self.session.flush()
                return existing.to_domain()
            model = JobModel.from_domain(job)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except IntegrityError as e:
            logger.error(f"Integrity error upserting job {job.job_hash}: {e}", exc_info=True)
            raise DataIntegrityError(f"Job data integrity violation: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error upserting job {job.job_hash}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to upsert job: {e}") from e

    def count(self) -> int:
        try:
            return self.session.execute(select(func.count()).select_from(JobModel)).scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Error counting jobs: {e}", exc_info=True)
            raise PersistenceError(f"Failed to count jobs: {e}") from e


class UserRepository:
    """User preference profiles."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_email(self, email: str) -> Optional[UserPreferences]:
        try:
            model = self.session.get(UserModel, email)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving user: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve user: {e}") from e

    def get_active_users(self, tier: Optional[str] = None) -> List[UserPreferences]:
        """Active users ordered by e-mail, optionally restricted to one tier."""
        try:
            stmt = select(UserModel).where(UserModel.is_active.is_(True))
            if tier is not None:
                stmt = stmt.where(UserModel.tier == tier)
            stmt = stmt.order_by(UserModel.email)
            return [model.to_domain() for model in self.session.execute(stmt).scalars()]
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving active users: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve users: {e}") from e

    def upsert(self, user: UserPreferences, is_active: bool = True) -> UserPreferences:
        """Insert or replace a profile (signup / profile flows and fixtures)."""
        payload = user.model_dump(mode="json", exclude={"email", "tier"})
        tier = getattr(user.tier, "value", user.tier)
        try:
            model = self.session.get(UserModel, user.email)
            if model is None:
                model = UserModel(email=user.email)
                self.session.add(model)
            model.tier = tier
            model.preferences = json.dumps(payload, sort_keys=True)
            model.is_active = is_active
            model.updated_at = format_timestamp(utc_now())
            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            logger.error(f"Error upserting user: {e}", exc_info=True)
            raise PersistenceError(f"Failed to upsert user: {e}") from e


class EmbeddingRepository:
    """Vector storage; doubles as the embedding cache and the job-vector store."""

    def __init__(self, session: Session):
        self.session = session

    def get_vector(
        self, subject_type: str, subject_id: str, content_hash: str
    ) -> Optional[List[float]]:
        """Return the stored vector when it was computed from the same text."""
        try:
            model = self.session.get(EmbeddingModel, (subject_type, subject_id))
        except SQLAlchemyError as e:
            logger.error(f"Error reading embedding {subject_type}/{subject_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to read embedding: {e}") from e
        if model is None or model.content_hash != content_hash:
            return None
        return model.load_vector()

    def save_vector(
        self,
        subject_type: str,
        subject_id: str,
        content_hash: str,
        vector: Sequence[float],
        model_name: str,
    ) -> None:
        """Insert or replace the vector for a subject."""
        try:
            model = self.session.get(EmbeddingModel, (subject_type, subject_id))
            if model is None:
                model = EmbeddingModel(subject_type=subject_type, subject_id=subject_id)
                self.session.add(model)
            model.content_hash = content_hash
            model.vector = json.dumps([float(x) for x in vector])
            model.dimension = len(vector)
            model.model = model_name
            model.updated_at = format_timestamp(utc_now())
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error saving embedding {subject_type}/{subject_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to save embedding: {e}") from e

    def get_job_vectors(self, job_hashes: Iterable[str]) -> Dict[str, List[float]]:
        """Stored job vectors keyed by job_hash; jobs without a vector are omitted."""
        hashes = sorted(set(job_hashes))
        vectors: Dict[str, List[float]] = {}
        try:
            for chunk in _chunks(hashes):
                stmt = select(EmbeddingModel).where(
                    EmbeddingModel.subject_type == "job",
                    EmbeddingModel.subject_id.in_(chunk),
                )
                for model in self.session.execute(stmt).scalars():
                    vectors[model.subject_id] = model.load_vector()
        except SQLAlchemyError as e:
            logger.error(f"Error reading job vectors: {e}", exc_info=True)
            raise PersistenceError(f"Failed to read job vectors: {e}") from e
        return vectors

    def count(self, subject_type: str) -> int:
        try:
            stmt = select(func.count()).select_from(EmbeddingModel).where(
                EmbeddingModel.subject_type == subject_type
            )
            return self.session.execute(stmt).scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Error counting embeddings: {e}", exc_info=True)
            raise PersistenceError(f"Failed to count embeddings: {e}") from e


class EmbeddingQueueRepository:
    """Embedding work queue with atomic batch claims.

    Items move ``pending -> in_progress -> processed`` or back to ``pending``
    on a retryable failure, and to ``failed`` once attempts are exhausted.
    """

    def __init__(self, session: Session):
        self.session = session

    def enqueue(self, job_hashes: Iterable[str], now: Optional[datetime] = None) -> int:
        """Queue job_hashes for embedding.

        Items already pending or in progress are left alone; processed or
        failed items are reset to pending (their content changed).

        Returns:
            Number of items newly made pending
        """
        stamp = format_timestamp(now or utc_now())
        queued = 0
        try:
            for job_hash in dict.fromkeys(job_hashes):
                model = self.session.execute(
                    select(EmbeddingQueueModel).where(EmbeddingQueueModel.job_hash == job_hash)
                ).scalar_one_or_none()
                if model is None:
                    self.session.add(
                        EmbeddingQueueModel(
                            job_hash=job_hash,
                            status=QueueStatus.PENDING.value,
                            attempts=0,
                            enqueued_at=stamp,
                            updated_at=stamp,
                        )
                    )
                    queued += 1
                elif model.status in (QueueStatus.PROCESSED.value, QueueStatus.FAILED.value):
                    model.status = QueueStatus.PENDING.value
                    model.attempts = 0
                    model.last_error = None
                    model.claim_token = None
                    model.enqueued_at = stamp
                    model.updated_at = stamp
                    queued += 1
            self.session.flush()
        except IntegrityError as e:
            logger.error(f"Integrity error enqueueing embeddings: {e}", exc_info=True)
            raise DataIntegrityError(f"Embedding queue integrity violation: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error enqueueing embeddings: {e}", exc_info=True)
            raise PersistenceError(f"Failed to enqueue embeddings: {e}") from e
        return queued

    def claim_batch(self, limit: int, now: Optional[datetime] = None) -> List[EmbeddingQueueItem]:
        """Atomically move up to ``limit`` pending items to in_progress.

        The UPDATE only touches rows still pending, so a concurrent worker
        that selected the same ids claims none of them.

        Returns:
            The items claimed by this call, oldest first
        """
        token = str(uuid.uuid4())
        stamp = format_timestamp(now or utc_now())
        try:
            candidate_ids = list(
                self.session.execute(
                    select(EmbeddingQueueModel.id)
                    .where(EmbeddingQueueModel.status == QueueStatus.PENDING.value)
                    .order_by(EmbeddingQueueModel.id)
                    .limit(limit)
                ).scalars()
            )
            if not candidate_ids:
                return []

            self.session.execute(
                update(EmbeddingQueueModel)
                .where(
                    EmbeddingQueueModel.id.in_(candidate_ids),
                    EmbeddingQueueModel.status == QueueStatus.PENDING.value,
                )
                .values(
                    status=QueueStatus.IN_PROGRESS.value,
                    claim_token=token,
                    claimed_at=stamp,
                    updated_at=stamp,
                )
                .execution_options(synchronize_session=False)
            )
            self.session.flush()

            claimed = self.session.execute(
                select(EmbeddingQueueModel)
                .where(EmbeddingQueueModel.claim_token == token)
                .order_by(EmbeddingQueueModel.id)
                .execution_options(populate_existing=True)
            ).scalars()
            return [model.to_domain() for model in claimed]
        except SQLAlchemyError as e:
            logger.error(f"Error claiming embedding batch: {e}", exc_info=True)
            raise PersistenceError(f"Failed to claim embedding batch: {e}") from e

    def mark_processed(self, job_hash: str, now: Optional[datetime] = None) -> None:
        """Mark an in-progress item as done."""
        model = self._get_model(job_hash)
        model.status = QueueStatus.PROCESSED.value
        model.last_error = None
        model.claim_token = None
        model.updated_at = format_timestamp(now or utc_now())
        self._flush("mark processed")

    def mark_failed(
        self,
        job_hash: str,
        error: str,
        max_attempts: int,
        now: Optional[datetime] = None,
        permanent: bool = False,
    ) -> str:
        """Record a failed attempt.

        Args:
            job_hash: Item to update
            error: Error description stored on the item
            max_attempts: Attempts allowed before the item fails permanently
            now: Timestamp override
            permanent: Fail immediately regardless of attempts left

        Returns:
            The item's new status ("pending" for retry, "failed" when exhausted)
        """
        model = self._get_model(job_hash)
        model.attempts = (model.attempts or 0) + 1
        model.last_error = error[:2000]
        model.claim_token = None
        model.updated_at = format_timestamp(now or utc_now())
        if permanent or model.attempts >= max_attempts:
            model.status = QueueStatus.FAILED.value
        else:
            model.status = QueueStatus.PENDING.value
        self._flush("mark failed")
        return model.status

    def release_stale_claims(self, claimed_before: datetime, now: Optional[datetime] = None) -> int:
        """Return in-progress items claimed before ``claimed_before`` to pending."""
        try:
            result = self.session.execute(
                update(EmbeddingQueueModel)
                .where(
                    EmbeddingQueueModel.status == QueueStatus.IN_PROGRESS.value,
                    EmbeddingQueueModel.claimed_at < format_timestamp(claimed_before),
                )
                .values(
                    status=QueueStatus.PENDING.value,
                    claim_token=None,
                    updated_at=format_timestamp(now or utc_now()),
                )
                .execution_options(synchronize_session=False)
            )
            self.session.flush()
            return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error releasing stale claims: {e}", exc_info=True)
            raise PersistenceError(f"Failed to release stale claims: {e}") from e

    def get(self, job_hash: str) -> Optional[EmbeddingQueueItem]:
        try:
            model = self.session.execute(
                select(EmbeddingQueueModel)
                .where(EmbeddingQueueModel.job_hash == job_hash)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error reading queue item {job_hash}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to read queue item: {e}") from e
        return model.to_domain() if model else None

    def count_by_status(self) -> Dict[str, int]:
        """Number of items per status (every status present, zero when empty)."""
        counts = {status.value: 0 for status in QueueStatus}
        try:
            stmt = select(EmbeddingQueueModel.status, func.count()).group_by(
                EmbeddingQueueModel.status
            )
            for status, count in self.session.execute(stmt):
                counts[status] = count
        except SQLAlchemyError as e:
            logger.error(f"Error counting queue items: {e}", exc_info=True)
            raise PersistenceError(f"Failed to count queue items: {e}") from e
        return counts

    def _get_model(self, job_hash: str) -> EmbeddingQueueModel:
        try:
            model = self.session.execute(
                select(EmbeddingQueueModel)
                .where(EmbeddingQueueModel.job_hash == job_hash)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error reading queue item {job_hash}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to read queue item: {e}") from e
        if model is None:
            raise RecordNotFoundError(f"Queue item not found: {job_hash}")
        return model

    def _flush(self, action: str) -> None:
        try:
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error during queue {action}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to {action}: {e}") from e


class MatchRepository:
    """Append-only storage for matches and their provenance rows."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, match: Match) -> Match:
        """Insert a match and return it with its generated id."""
        try:
            model = MatchModel.from_domain(match)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except IntegrityError as e:
            logger.error(f"Integrity error inserting match: {e}", exc_info=True)
            raise DataIntegrityError(f"Match integrity violation: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error inserting match: {e}", exc_info=True)
            raise PersistenceError(f"Failed to insert match: {e}") from e

    def add_provenance(self, provenance: MatchProvenance) -> MatchProvenance:
        """Insert the provenance row for a match.

        Raises:
            RecordNotFoundError: If the match does not exist
            DataIntegrityError: If the match already has a provenance row
        """
        try:
            if self.session.get(MatchModel, provenance.match_id) is None:
                raise RecordNotFoundError(f"Match not found: {provenance.match_id}")
            if self.session.get(MatchProvenanceModel, provenance.match_id) is not None:
                raise DataIntegrityError(
                    f"Provenance already recorded for match {provenance.match_id}"
                )
            model = MatchProvenanceModel.from_domain(provenance)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except IntegrityError as e:
            logger.error(f"Integrity error inserting provenance: {e}", exc_info=True)
            raise DataIntegrityError(f"Provenance integrity violation: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error inserting provenance: {e}", exc_info=True)
            raise PersistenceError(f"Failed to insert provenance: {e}") from e

    def get_provenance(self, match_id: int) -> Optional[MatchProvenance]:
        try:
            model = self.session.get(MatchProvenanceModel, match_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error reading provenance {match_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to read provenance: {e}") from e

    def get_for_user(self, user_email: str, limit: Optional[int] = None) -> List[Match]:
        """Matches for a user, newest first."""
        try:
            stmt = (
                select(MatchModel)
                .where(MatchModel.user_email == user_email)
                .order_by(MatchModel.created_at.desc(), MatchModel.id.desc())
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            return [model.to_domain() for model in self.session.execute(stmt).scalars()]
        except SQLAlchemyError as e:
            logger.error(f"Error reading matches for user: {e}", exc_info=True)
            raise PersistenceError(f"Failed to read matches: {e}") from e

    def get_by_run(self, run_id: str) -> List[Match]:
        try:
            stmt = select(MatchModel).where(MatchModel.run_id == run_id).order_by(MatchModel.id)
            return [model.to_domain() for model in self.session.execute(stmt).scalars()]
        except SQLAlchemyError as e:
            logger.error(f"Error reading matches for run {run_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to read matches: {e}") from e

    def find_matches_without_provenance(
        self, match_ids: Optional[Iterable[int]] = None
    ) -> List[int]:
        """Ids of persisted matches that have no provenance row."""
        try:
            stmt = (
                select(MatchModel.id)
                .outerjoin(MatchProvenanceModel, MatchProvenanceModel.match_id == MatchModel.id)
                .where(MatchProvenanceModel.match_id.is_(None))
                .order_by(MatchModel.id)
            )
            if match_ids is not None:
                stmt = stmt.where(MatchModel.id.in_(list(match_ids)))
            return list(self.session.execute(stmt).scalars())
        except SQLAlchemyError as e:
            logger.error(f"Error checking provenance coverage: {e}", exc_info=True)
            raise PersistenceError(f"Failed to check provenance coverage: {e}") from e


class SeenJobRepository:
    """Per-user set of delivered job hashes."""

    def __init__(self, session: Session):
        self.session = session

    def get_seen_hashes(self, user_email: str) -> Set[str]:
        try:
            stmt = select(SeenJobModel.job_hash).where(SeenJobModel.user_email == user_email)
            return set(self.session.execute(stmt).scalars())
        except SQLAlchemyError as e:
            logger.error(f"Error reading seen jobs: {e}", exc_info=True)
            raise PersistenceError(f"Failed to read seen jobs: {e}") from e

    def add(self, user_email: str, job_hash: str, seen_at: Optional[datetime] = None) -> None:
        """Mark a job as delivered.

        Raises:
            DataIntegrityError: If the job was already delivered to this user
        """
        try:
            if self.session.get(SeenJobModel, (user_email, job_hash)) is not None:
                raise DataIntegrityError(f"Job {job_hash} already marked seen for user")
            self.session.add(
                SeenJobModel(
                    user_email=user_email,
                    job_hash=job_hash,
                    seen_at=format_timestamp(seen_at or utc_now()),
                )
            )
            self.session.flush()
        except IntegrityError as e:
            logger.error(f"Integrity error marking job seen: {e}", exc_info=True)
            raise DataIntegrityError(f"Duplicate seen job: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error marking job seen: {e}", exc_info=True)
            raise PersistenceError(f"Failed to mark job seen: {e}") from e

    def add_many(
        self, user_email: str, job_hashes: Iterable[str], seen_at: Optional[datetime] = None
    ) -> int:
        count = 0
        for job_hash in job_hashes:
            self.add(user_email, job_hash, seen_at)
            count += 1
        return count


class SendLedgerRepository:
    """Weekly send counters per (user, ISO week, tier)."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, user_email: str, week_key: str, tier: str) -> Optional[SendLedgerEntry]:
        try:
            model = self.session.get(SendLedgerModel, (user_email, week_key, tier))
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error reading send ledger: {e}", exc_info=True)
            raise PersistenceError(f"Failed to read send ledger: {e}") from e

    def sends_used(self, user_email: str, week_key: str, tier: str) -> int:
        entry = self.get(user_email, week_key, tier)
        return entry.sends_used if entry else 0

    def record_send(
        self,
        user_email: str,
        week_key: str,
        tier: str,
        jobs_sent: int,
        now: Optional[datetime] = None,
        allowed: Optional[int] = None,
    ) -> SendLedgerEntry:
        """Increment sends_used by one and jobs_sent by ``jobs_sent``.

        Uses an in-place ``UPDATE ... SET n = n + 1`` so concurrent sends for
        the same user serialize on the row instead of losing an increment.
        With ``allowed`` the update only matches while ``sends_used < allowed``,
        which re-checks the weekly quota inside the committing transaction.

        Raises:
            SendQuotaExceededError: The ledger already holds ``allowed`` sends
            DataIntegrityError: A concurrent insert created the row first
        """
        stamp = format_timestamp(now or utc_now())
        key = (
            SendLedgerModel.user_email == user_email,
            SendLedgerModel.week_key == week_key,
            SendLedgerModel.tier == tier,
        )
        conditions = key if allowed is None else key + (SendLedgerModel.sends_used < allowed,)
        try:
            result = self.session.execute(
                update(SendLedgerModel)
                .where(*conditions)
                .values(
                    sends_used=SendLedgerModel.sends_used + 1,
                    jobs_sent=SendLedgerModel.jobs_sent + jobs_sent,
                    updated_at=stamp,
                )
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:
                exists = self.session.execute(
                    select(func.count()).select_from(SendLedgerModel).where(*key)
                ).scalar_one()
                if exists or (allowed is not None and allowed < 1):
                    raise SendQuotaExceededError(
                        f"Weekly send quota of {allowed} already used for {week_key}"
                    )
                self.session.add(
                    SendLedgerModel(
                        user_email=user_email,
                        week_key=week_key,
                        tier=tier,
                        sends_used=1,
                        jobs_sent=jobs_sent,
                        updated_at=stamp,
                    )
                )
            self.session.flush()
            model = self.session.execute(
                select(SendLedgerModel)
                .where(*key)
                .execution_options(populate_existing=True)
            ).scalar_one()
            return model.to_domain()
        except IntegrityError as e:
            logger.error(f"Integrity error recording send: {e}", exc_info=True)
            raise DataIntegrityError(f"Send ledger integrity violation: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error recording send: {e}", exc_info=True)
            raise PersistenceError(f"Failed to record send: {e}") from e
