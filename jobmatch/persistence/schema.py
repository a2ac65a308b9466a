"""Database schema definition and ORM models.

Timestamps are stored as fixed-width ISO-8601 UTC strings and list/vector
fields as JSON text, so the schema runs unchanged on SQLite and Postgres.
"""

import json
import logging
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from jobmatch.domain.models import (
    EmbeddingQueueItem,
    Job,
    Match,
    MatchProvenance,
    SeenJob,
    SendLedgerEntry,
    UserPreferences,
)
from jobmatch.utils.timestamps import format_timestamp, parse_iso_datetime

logger = logging.getLogger(__name__)

Base = declarative_base()


def _format_datetime(dt: Optional[datetime]) -> Optional[str]:
    return format_timestamp(dt) if dt is not None else None


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return parse_iso_datetime(value) if value else None


def _dump_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


def _load_json_list(value: Optional[str]) -> List[Any]:
    if not value:
        return []
    loaded = json.loads(value)
    return loaded if isinstance(loaded, list) else []


class JobModel(Base):
    """Normalized job postings. Written by ingestion, read by matching."""

    __tablename__ = "jobs"

    job_hash = Column(String(64), primary_key=True, nullable=False)
    title = Column(Text, nullable=False)
    company = Column(String(255), nullable=False)
    city = Column(String(255), nullable=True)
    country = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    categories = Column(Text, nullable=False, default="[]")
    work_environment = Column(String(50), nullable=True)
    is_internship = Column(Boolean, nullable=False, default=False)
    is_graduate = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    status = Column(String(50), nullable=False, default="active")
    created_at = Column(String(50), nullable=True)
    source = Column(String(100), nullable=True)

    __table_args__ = (
        Index("idx_jobs_active_status", "is_active", "status"),
        Index("idx_jobs_created_at", "created_at"),
        Index("idx_jobs_city", "city"),
    )

    def to_domain(self) -> Job:
        return Job(
            job_hash=self.job_hash,
            title=self.title,
            company=self.company,
            city=self.city,
            country=self.country,
            description=self.description,
            categories=_load_json_list(self.categories),
            work_environment=self.work_environment,
            is_internship=bool(self.is_internship),
            is_graduate=bool(self.is_graduate),
            is_active=bool(self.is_active),
            status=self.status,
            created_at=_parse_datetime(self.created_at),
            source=self.source,
        )

    def apply(self, job: Job) -> None:
        """Copy every field of ``job`` onto this row."""
        self.title = job.title
        self.company = job.company
        self.city = job.city
        self.country = job.country
        self.description = job.description
        self.categories = _dump_json(job.categories)
        self.work_environment = job.work_environment
        self.is_internship = job.is_internship
        self.is_graduate = job.is_graduate
        self.is_active = job.is_active
        self.status = job.status
        self.created_at = _format_datetime(job.created_at)
        self.source = job.source

    @classmethod
    def from_domain(cls, job: Job) -> "JobModel":
        model = cls(job_hash=job.job_hash)
        model.apply(job)
        return model


class UserModel(Base):
    """User preference profiles, keyed by e-mail."""

    __tablename__ = "users"

    email = Column(String(320), primary_key=True, nullable=False)
    tier = Column(String(20), nullable=False, default="free")
    preferences = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(String(50), nullable=False)

    __table_args__ = (Index("idx_users_tier_active", "tier", "is_active"),)

    def to_domain(self) -> UserPreferences:
        payload = json.loads(self.preferences)
        payload["email"] = self.email
        payload["tier"] = self.tier
        return UserPreferences.model_validate(payload)


class EmbeddingModel(Base):
    """Stored vectors for users and jobs, keyed by subject and text hash."""

    __tablename__ = "embeddings"

    subject_type = Column(String(10), primary_key=True, nullable=False)
    subject_id = Column(String(320), primary_key=True, nullable=False)
    content_hash = Column(String(64), nullable=False)
    vector = Column(Text, nullable=False)
    dimension = Column(Integer, nullable=False)
    model = Column(String(100), nullable=False)
    updated_at = Column(String(50), nullable=False)

    def load_vector(self) -> List[float]:
        return [float(x) for x in _load_json_list(self.vector)]


class EmbeddingQueueModel(Base):
    """Work queue of job_hashes awaiting embeddings."""

    __tablename__ = "embedding_queue"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_hash = Column(String(64), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    claim_token = Column(String(36), nullable=True)
    claimed_at = Column(String(50), nullable=True)
    enqueued_at = Column(String(50), nullable=False)
    updated_at = Column(String(50), nullable=False)

    __table_args__ = (
        UniqueConstraint("job_hash", name="uq_embedding_queue_job_hash"),
        Index("idx_embedding_queue_status", "status", "id"),
        Index("idx_embedding_queue_claim", "claim_token"),
    )

    def to_domain(self) -> EmbeddingQueueItem:
        return EmbeddingQueueItem(
            id=self.id,
            job_hash=self.job_hash,
            status=self.status,
            attempts=self.attempts,
            last_error=self.last_error,
            enqueued_at=_parse_datetime(self.enqueued_at),
            updated_at=_parse_datetime(self.updated_at),
        )


class MatchModel(Base):
    """Persisted matches consumed by the delivery stage. Append-only."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(36), nullable=False)
    user_email = Column(String(320), nullable=False)
    job_hash = Column(String(64), nullable=False)
    match_score = Column(Integer, nullable=False)
    confidence_score = Column(Float, nullable=False)
    match_reason = Column(Text, nullable=False)
    match_quality = Column(String(20), nullable=False)
    relaxation_level = Column(Integer, nullable=False, default=0)
    accuracy_score = Column(Integer, nullable=False, default=100)
    created_at = Column(String(50), nullable=False)

    __table_args__ = (
        Index("idx_matches_user_created", "user_email", "created_at"),
        Index("idx_matches_run", "run_id"),
    )

    def to_domain(self) -> Match:
        return Match(
            id=self.id,
            run_id=self.run_id,
            user_email=self.user_email,
            job_hash=self.job_hash,
            match_score=self.match_score,
            confidence_score=self.confidence_score,
            match_reason=self.match_reason,
            match_quality=self.match_quality,
            relaxation_level=self.relaxation_level,
            accuracy_score=self.accuracy_score,
            created_at=_parse_datetime(self.created_at),
        )

    @classmethod
    def from_domain(cls, match: Match) -> "MatchModel":
        return cls(
            run_id=match.run_id,
            user_email=match.user_email,
            job_hash=match.job_hash,
            match_score=match.match_score,
            confidence_score=match.confidence_score,
            match_reason=match.match_reason,
            match_quality=match.match_quality,
            relaxation_level=match.relaxation_level,
            accuracy_score=match.accuracy_score,
            created_at=_format_datetime(match.created_at),
        )


class MatchProvenanceModel(Base):
    """Exactly one row per match; the primary key is the match id."""

    __tablename__ = "match_provenance"

    match_id = Column(Integer, ForeignKey("matches.id"), primary_key=True, nullable=False)
    match_algorithm = Column(String(10), nullable=False)
    ai_model = Column(String(100), nullable=True)
    prompt_version = Column(String(20), nullable=True)
    ai_latency_ms = Column(Integer, nullable=True)
    ai_cost_usd = Column(Float, nullable=True)
    cache_hit = Column(Boolean, nullable=False, default=False)
    fallback_reason = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    error_category = Column(String(30), nullable=True)
    confidence_score = Column(Float, nullable=False)
    created_at = Column(String(50), nullable=False)

    __table_args__ = (Index("idx_provenance_algorithm", "match_algorithm", "created_at"),)

    def to_domain(self) -> MatchProvenance:
        return MatchProvenance(
            match_id=self.match_id,
            match_algorithm=self.match_algorithm,
            ai_model=self.ai_model,
            prompt_version=self.prompt_version,
            ai_latency_ms=self.ai_latency_ms,
            ai_cost_usd=self.ai_cost_usd,
            cache_hit=bool(self.cache_hit),
            fallback_reason=self.fallback_reason,
            retry_count=self.retry_count,
            error_category=self.error_category,
            confidence_score=self.confidence_score,
            created_at=_parse_datetime(self.created_at),
        )

    @classmethod
    def from_domain(cls, provenance: MatchProvenance) -> "MatchProvenanceModel":
        return cls(
            match_id=provenance.match_id,
            match_algorithm=provenance.match_algorithm,
            ai_model=provenance.ai_model,
            prompt_version=provenance.prompt_version,
            ai_latency_ms=provenance.ai_latency_ms,
            ai_cost_usd=provenance.ai_cost_usd,
            cache_hit=provenance.cache_hit,
            fallback_reason=provenance.fallback_reason,
            retry_count=provenance.retry_count,
            error_category=provenance.error_category,
            confidence_score=provenance.confidence_score,
            created_at=_format_datetime(provenance.created_at),
        )


class SeenJobModel(Base):
    """Jobs already delivered per user. The composite key forbids repeats."""

    __tablename__ = "seen_jobs"

    user_email = Column(String(320), primary_key=True, nullable=False)
    job_hash = Column(String(64), primary_key=True, nullable=False)
    seen_at = Column(String(50), nullable=False)

    def to_domain(self) -> SeenJob:
        return SeenJob(
            user_email=self.user_email,
            job_hash=self.job_hash,
            seen_at=_parse_datetime(self.seen_at),
        )


class SendLedgerModel(Base):
    """Weekly send counters per user and tier."""

    __tablename__ = "send_ledger"

    user_email = Column(String(320), primary_key=True, nullable=False)
    week_key = Column(String(8), primary_key=True, nullable=False)
    tier = Column(String(20), primary_key=True, nullable=False)
    sends_used = Column(Integer, nullable=False, default=0)
    jobs_sent = Column(Integer, nullable=False, default=0)
    updated_at = Column(String(50), nullable=False)

    def to_domain(self) -> SendLedgerEntry:
        return SendLedgerEntry(
            user_email=self.user_email,
            week_key=self.week_key,
            tier=self.tier,
            sends_used=self.sends_used,
            jobs_sent=self.jobs_sent,
            updated_at=_parse_datetime(self.updated_at),
        )


def create_schema(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(engine)
    logger.debug("Database schema ensured", extra={"event": "database.schema.ensured"})


def drop_schema(engine: Engine) -> None:
    """Drop every table (tests only)."""
    Base.metadata.drop_all(engine)
