"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .duration import DurationParseError, parse_duration, validate_duration_range


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class ScoringStrategy(str, Enum):
    """Scoring strategies a tier can use as its primary."""

    AI = "ai"
    RULES = "rules"


class RelaxationStep(str, Enum):
    """Constraint-loosening steps applied by the candidate selector."""

    EXPAND_TO_COUNTRY = "expand_to_country"
    DROP_CITY = "drop_city"
    WIDEN_FRESHNESS = "widen_freshness"
    DROP_CATEGORY = "drop_category"


DEFAULT_RELAXATION_STEPS = [
    RelaxationStep.EXPAND_TO_COUNTRY,
    RelaxationStep.DROP_CITY,
    RelaxationStep.WIDEN_FRESHNESS,
    RelaxationStep.DROP_CATEGORY,
]


def _checked_duration(value: str, min_seconds: int, max_seconds: int, label: str) -> str:
    try:
        validate_duration_range(parse_duration(value), min_seconds, max_seconds, label)
    except DurationParseError as e:
        raise ValueError(str(e)) from e
    return value


class MatchingConfig(BaseModel):
    """Candidate selection and relaxation policy."""

    min_candidates: int = Field(
        10, ge=1, le=500, description="Relax filters until at least this many candidates survive"
    )
    max_candidates: int = Field(
        50, ge=1, le=1000, description="Candidates handed to the scoring engine"
    )
    relaxation_level_step: int = Field(
        2, ge=1, le=10, description="Relaxation level added per applied step"
    )
    relaxation_steps: List[RelaxationStep] = Field(
        default_factory=lambda: list(DEFAULT_RELAXATION_STEPS),
        description="Ordered relaxation steps",
    )
    freshness_window: str = Field("30d", description="Strict posting age window")
    relaxed_freshness_window: str = Field("90d", description="Window after widening freshness")
    semantic_enabled: bool = Field(True, description="Rank candidates by embedding similarity")
    semantic_limit: int = Field(200, ge=1, le=5000, description="Semantic neighbours to fetch")

    @field_validator("freshness_window", "relaxed_freshness_window")
    @classmethod
    def validate_window(cls, v: str) -> str:
        """Freshness windows must be between one day and one year."""
        return _checked_duration(v, 86400, 366 * 86400, "Freshness window")

    @field_validator("relaxation_steps")
    @classmethod
    def validate_steps_unique(cls, v: List[RelaxationStep]) -> List[RelaxationStep]:
        """Each relaxation step may appear at most once."""
        if len(set(v)) != len(v):
            raise ValueError("relaxation_steps must not contain duplicates")
        return v

    @model_validator(mode="after")
    def validate_windows_and_limits(self):
        """Relaxed window must not be narrower than the strict one."""
        if parse_duration(self.relaxed_freshness_window) < parse_duration(self.freshness_window):
            raise ValueError("relaxed_freshness_window must be at least freshness_window")
        if self.max_candidates < self.min_candidates:
            raise ValueError("max_candidates must be greater than or equal to min_candidates")
        return self

    @property
    def freshness_window_seconds(self) -> int:
        return parse_duration(self.freshness_window)

    @property
    def relaxed_freshness_window_seconds(self) -> int:
        return parse_duration(self.relaxed_freshness_window)

    model_config = {"use_enum_values": True}


class RuleWeights(BaseModel):
    """Points each rule dimension contributes to the 0-100 composite."""

    category: int = Field(30, ge=0, le=100)
    location: int = Field(20, ge=0, le=100)
    skills: int = Field(20, ge=0, le=100)
    experience: int = Field(15, ge=0, le=100)
    company: int = Field(15, ge=0, le=100)

    @model_validator(mode="after")
    def validate_total(self):
        """Weights must add up to exactly 100."""
        total = self.category + self.location + self.skills + self.experience + self.company
        if total != 100:
            raise ValueError(f"rule_weights must sum to 100, got {total}")
        return self


class ScoringConfig(BaseModel):
    """Scoring engine settings shared by both strategies."""

    ai_timeout: str = Field("20s", description="Hard timeout for one AI scoring call")
    ai_max_retries: int = Field(
        1, ge=0, le=3, description="Extra attempts after a provider error (never after a timeout)"
    )
    rules_min_signal_score: int = Field(
        55, ge=0, le=100, description="Best rule score below which AI is consulted as a secondary"
    )
    ai_cache_ttl: str = Field("6h", description="Lifetime of cached AI responses")
    ai_cache_max_entries: int = Field(500, ge=0, le=100000)
    rule_weights: RuleWeights = Field(default_factory=RuleWeights)

    @field_validator("ai_timeout")
    @classmethod
    def validate_ai_timeout(cls, v: str) -> str:
        """AI timeout must be between 1 second and 5 minutes."""
        return _checked_duration(v, 1, 300, "AI timeout")

    @field_validator("ai_cache_ttl")
    @classmethod
    def validate_cache_ttl(cls, v: str) -> str:
        return _checked_duration(v, 1, 7 * 86400, "AI cache TTL")

    @property
    def ai_timeout_seconds(self) -> int:
        return parse_duration(self.ai_timeout)

    @property
    def ai_cache_ttl_seconds(self) -> int:
        return parse_duration(self.ai_cache_ttl)


class TierPolicy(BaseModel):
    """Quota, cadence and strategy for one service tier."""

    jobs_per_send: int = Field(..., ge=1, le=50, description="Match quota per send")
    sends_per_week: int = Field(..., ge=1, le=14, description="Allowed sends per ISO week")
    primary_strategy: ScoringStrategy = Field(ScoringStrategy.AI)
    diversity_max_fraction: float = Field(
        0.5, gt=0.0, le=1.0, description="Largest share of one city or category in a send"
    )

    model_config = {"use_enum_values": True}


class TiersConfig(BaseModel):
    """Policies for the free and premium tiers."""

    free: TierPolicy = Field(
        default_factory=lambda: TierPolicy(
            jobs_per_send=5, sends_per_week=1, diversity_max_fraction=0.6
        )
    )
    premium: TierPolicy = Field(
        default_factory=lambda: TierPolicy(
            jobs_per_send=15, sends_per_week=3, diversity_max_fraction=0.4
        )
    )

    def for_tier(self, tier: str) -> TierPolicy:
        """Return the policy for ``tier`` ("free" or "premium")."""
        value = getattr(tier, "value", tier)
        if value == "premium":
            return self.premium
        return self.free


class AIConfig(BaseModel):
    """LLM model settings."""

    model: str = Field("gpt-4o-mini", min_length=1)
    temperature: float = Field(0.1, ge=0.0, le=2.0)
    free_max_tokens: int = Field(1500, ge=100, le=16000)
    premium_max_tokens: int = Field(3000, ge=100, le=16000)
    prompt_version: str = Field("v3", min_length=1)

    @field_validator("model", "prompt_version")
    @classmethod
    def strip_value(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Field cannot be empty or whitespace-only")
        return stripped


class EmbeddingConfig(BaseModel):
    """Embedding provider and work-queue settings."""

    model: str = Field("text-embedding-3-small", min_length=1)
    dimension: int = Field(1536, ge=8, le=8192)
    batch_size: int = Field(100, ge=1, le=2048, description="Queue items claimed per batch")
    max_attempts: int = Field(3, ge=1, le=10, description="Attempts before an item fails permanently")
    request_timeout: str = Field("30s")
    stale_claim_after: str = Field("30m", description="Requeue in-progress items older than this")

    @field_validator("request_timeout")
    @classmethod
    def validate_request_timeout(cls, v: str) -> str:
        return _checked_duration(v, 1, 600, "Embedding request timeout")

    @field_validator("stale_claim_after")
    @classmethod
    def validate_stale_claim(cls, v: str) -> str:
        return _checked_duration(v, 60, 86400, "Stale claim threshold")

    @property
    def request_timeout_seconds(self) -> int:
        return parse_duration(self.request_timeout)

    @property
    def stale_claim_after_seconds(self) -> int:
        return parse_duration(self.stale_claim_after)


class ScheduleConfig(BaseModel):
    """Intervals used by the scheduler."""

    match_interval: str = Field("24h", description="Batch matching interval")
    embedding_interval: str = Field("15m", description="Embedding queue drain interval")

    @field_validator("match_interval")
    @classmethod
    def validate_match_interval(cls, v: str) -> str:
        """Matching runs between every 15 minutes and once a week."""
        return _checked_duration(v, 900, 7 * 86400, "Match interval")

    @field_validator("embedding_interval")
    @classmethod
    def validate_embedding_interval(cls, v: str) -> str:
        return _checked_duration(v, 60, 86400, "Embedding interval")

    @property
    def match_interval_seconds(self) -> int:
        return parse_duration(self.match_interval)

    @property
    def embedding_interval_seconds(self) -> int:
        return parse_duration(self.embedding_interval)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(LogFormat.JSON, description="Log output format (json or key-value)")
    redact_emails: bool = Field(True, description="Mask user e-mail addresses in log output")

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object for the job match engine."""

    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    tiers: TiersConfig = Field(default_factory=TiersConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    embeddings: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def tier_policy(self, tier: str) -> TierPolicy:
        """Shortcut for ``self.tiers.for_tier(tier)``."""
        return self.tiers.for_tier(tier)

    def max_quota(self) -> int:
        """Largest per-send quota across tiers."""
        return max(self.tiers.free.jobs_per_send, self.tiers.premium.jobs_per_send)


def default_config() -> AppConfig:
    """Build an ``AppConfig`` populated entirely from defaults."""
    return AppConfig()
