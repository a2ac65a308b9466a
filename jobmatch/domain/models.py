"""Core domain models for users, jobs, matches and delivery tracking.

This module defines the records the matching core reads and writes:
- UserPreferences: a user's declared matching profile (read-only to the core)
- Job: a normalized job posting supplied by ingestion (read-only to the core)
- Match / MatchProvenance: persisted results of a matching run (append-only)
- SeenJob / SendLedgerEntry: per-user delivery dedup and weekly quota counters
- EmbeddingQueueItem: a job_hash waiting for an embedding
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

EARLY_CAREER_CATEGORY = "early-career"


def _to_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is None:
        return None
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


def _clean_list(values: List[str]) -> List[str]:
    """Strip entries, drop blanks and keep the first occurrence of each value."""
    seen = set()
    cleaned = []
    for value in values:
        stripped = value.strip() if isinstance(value, str) else ""
        key = stripped.lower()
        if stripped and key not in seen:
            seen.add(key)
            cleaned.append(stripped)
    return cleaned


class Tier(str, Enum):
    """Service level: decides quota, send cadence and scoring preference."""

    FREE = "free"
    PREMIUM = "premium"


class MatchAlgorithm(str, Enum):
    """Strategy that produced a persisted match."""

    AI = "ai"
    RULES = "rules"


class ErrorCategory(str, Enum):
    """Why an AI scoring attempt failed."""

    TIMEOUT = "timeout"
    SCHEMA_VIOLATION = "schema_violation"
    PROVIDER_ERROR = "provider_error"


class QueueStatus(str, Enum):
    """Lifecycle of an embedding work-queue item."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    PROCESSED = "processed"
    FAILED = "failed"


class UserPreferences(BaseModel):
    """A user's matching profile.

    Immutable for the duration of a matching run; owned and updated by the
    signup / profile flows outside the core.
    """

    email: EmailStr = Field(..., description="Unique user identity")
    target_cities: List[str] = Field(..., min_length=1, max_length=10)
    career_path: List[str] = Field(..., min_length=1, max_length=2)
    roles_selected: List[str] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    industries: List[str] = Field(default_factory=list)
    languages_spoken: List[str] = Field(default_factory=list)
    entry_level_preference: Optional[str] = Field(
        None, description="e.g. internship, graduate, entry"
    )
    company_size_preference: Optional[str] = Field(
        None, description="e.g. startup, scaleup, enterprise"
    )
    work_environment: Optional[str] = Field(None, description="office, hybrid or remote")
    visa_status: Optional[str] = Field(None, description="Free-text visa situation")
    tier: Tier = Field(Tier.FREE)

    @field_validator("target_cities", "career_path", mode="before")
    @classmethod
    def clean_required_lists(cls, v):
        """Normalize ordered sets; blank entries are removed before length checks."""
        if isinstance(v, str):
            v = [v]
        return _clean_list(list(v or []))

    @field_validator("roles_selected", "skills", "industries", "languages_spoken", mode="before")
    @classmethod
    def clean_optional_lists(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        return _clean_list(list(v))

    @field_validator(
        "entry_level_preference",
        "company_size_preference",
        "work_environment",
        "visa_status",
    )
    @classmethod
    def strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        stripped = v.strip()
        return stripped or None

    @property
    def is_premium(self) -> bool:
        return self.tier == Tier.PREMIUM

    model_config = {"frozen": True, "use_enum_values": True}


class Job(BaseModel):
    """Normalized job posting.

    The job_hash is derived from normalized title + company + location by the
    ingestion stage and is the identity used for dedup across the system.
    """

    job_hash: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    company: str = Field(..., min_length=1)
    city: Optional[str] = None
    country: Optional[str] = None
    description: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    work_environment: Optional[str] = None
    is_internship: bool = False
    is_graduate: bool = False
    is_active: bool = True
    status: str = "active"
    created_at: Optional[datetime] = None
    source: Optional[str] = None

    @field_validator("job_hash", "title", "company")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        """Strip whitespace from identifying fields."""
        if not v or not v.strip():
            raise ValueError("Field cannot be empty or whitespace-only")
        return v.strip()

    @field_validator("city", "country", "work_environment", "source")
    @classmethod
    def strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        stripped = v.strip()
        return stripped or None

    @field_validator("categories", mode="before")
    @classmethod
    def normalize_categories(cls, v):
        """Categories are stored lowercase and deduplicated."""
        if v is None:
            return []
        return _clean_list([c.lower() for c in v if isinstance(c, str)])

    @field_validator("status")
    @classmethod
    def normalize_status(cls, v: str) -> str:
        return (v or "").strip().lower()

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure datetime is timezone-aware and in UTC."""
        return _to_utc(v)

    @property
    def is_candidate(self) -> bool:
        """Only active postings with status ``active`` may be matched."""
        return self.is_active and self.status == "active"

    @property
    def is_early_career(self) -> bool:
        """Internship, graduate scheme, or explicitly tagged early-career."""
        return self.is_internship or self.is_graduate or EARLY_CAREER_CATEGORY in self.categories

    @property
    def location(self) -> str:
        """Display location, e.g. ``Berlin, Germany``."""
        parts = [part for part in (self.city, self.country) if part]
        return ", ".join(parts) if parts else "Location not specified"

    @property
    def is_remote_friendly(self) -> bool:
        env = (self.work_environment or "").lower()
        return env in ("remote", "hybrid")


class Match(BaseModel):
    """A persisted recommendation. Corrections are new rows, never updates."""

    id: Optional[int] = None
    run_id: str
    user_email: str
    job_hash: str
    match_score: int = Field(..., ge=0, le=100)
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    match_reason: str
    match_quality: str
    relaxation_level: int = Field(0, ge=0)
    accuracy_score: int = Field(100, ge=70, le=100)
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _to_utc(v)


class MatchProvenance(BaseModel):
    """How a single match was produced. One row per match; append-only."""

    match_id: int
    match_algorithm: MatchAlgorithm
    ai_model: Optional[str] = None
    prompt_version: Optional[str] = None
    ai_latency_ms: Optional[int] = Field(None, ge=0)
    ai_cost_usd: Optional[float] = Field(None, ge=0.0)
    cache_hit: bool = False
    fallback_reason: Optional[str] = None
    retry_count: int = Field(0, ge=0)
    error_category: Optional[ErrorCategory] = None
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _to_utc(v)

    model_config = {"use_enum_values": True}


class SeenJob(BaseModel):
    """A job already delivered to a user; never delivered to them again."""

    user_email: str
    job_hash: str
    seen_at: datetime

    @field_validator("seen_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return _to_utc(v)


class SendLedgerEntry(BaseModel):
    """Per (user, ISO week, tier) delivery counters."""

    user_email: str
    week_key: str = Field(..., pattern=r"^\d{4}-W\d{2}$")
    tier: Tier
    sends_used: int = Field(0, ge=0)
    jobs_sent: int = Field(0, ge=0)
    updated_at: Optional[datetime] = None

    model_config = {"use_enum_values": True}


class EmbeddingQueueItem(BaseModel):
    """A job waiting for (or done with) embedding generation."""

    id: Optional[int] = None
    job_hash: str
    status: QueueStatus = QueueStatus.PENDING
    attempts: int = Field(0, ge=0)
    last_error: Optional[str] = None
    enqueued_at: datetime
    updated_at: datetime

    model_config = {"use_enum_values": True}
