"""Utility functions for hashing and time handling."""

from .hashing import (
    compute_content_hash,
    compute_job_hash,
    fingerprint,
    hash_string,
    normalize_text,
)
from .timestamps import (
    age_in_days,
    ensure_utc,
    format_timestamp,
    iso_week_key,
    parse_iso_datetime,
    utc_now,
)

__all__ = [
    # Hashing
    "compute_job_hash",
    "compute_content_hash",
    "fingerprint",
    "hash_string",
    "normalize_text",
    # Timestamps
    "utc_now",
    "ensure_utc",
    "parse_iso_datetime",
    "format_timestamp",
    "iso_week_key",
    "age_in_days",
]
