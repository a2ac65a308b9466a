"""Configuration management for the job match engine."""

from .duration import DurationParseError, parse_duration, parse_timedelta
from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config, parse_config, validate_config_file
from .models import (
    AIConfig,
    AppConfig,
    EmbeddingConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    MatchingConfig,
    RelaxationStep,
    RuleWeights,
    ScheduleConfig,
    ScoringConfig,
    ScoringStrategy,
    TierPolicy,
    TiersConfig,
    default_config,
)

__all__ = [
    # Loader functions
    "load_config",
    "parse_config",
    "validate_config_file",
    "load_environment_config",
    "default_config",
    # Configuration models
    "AppConfig",
    "MatchingConfig",
    "ScoringConfig",
    "RuleWeights",
    "TierPolicy",
    "TiersConfig",
    "AIConfig",
    "EmbeddingConfig",
    "ScheduleConfig",
    "LoggingConfig",
    "EnvironmentConfig",
    # Enums
    "LogLevel",
    "LogFormat",
    "ScoringStrategy",
    "RelaxationStep",
    # Durations
    "parse_duration",
    "parse_timedelta",
    "DurationParseError",
    # Exceptions
    "ConfigurationError",
]
