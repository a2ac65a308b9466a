"""Timestamp utilities for UTC handling, parsing and quota weeks."""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware and in UTC.

    Naive datetimes are treated as UTC; aware ones are converted.

    Args:
        dt: Datetime to convert (can be None)

    Returns:
        Timezone-aware datetime in UTC, or None if input is None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso_datetime(iso_string: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 datetime string to UTC datetime.

    Supports ``2025-11-04T12:00:00Z``, ``2025-11-04T12:00:00+00:00``,
    ``2025-11-04T12:00:00.123456Z`` and ``2025-11-04``.

    Args:
        iso_string: ISO 8601 formatted datetime string

    Returns:
        Timezone-aware datetime in UTC, or None if parsing fails
    """
    if not iso_string or not iso_string.strip():
        return None

    cleaned = iso_string.strip()
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(cleaned))
    except ValueError:
        return None


def format_timestamp(dt: datetime) -> str:
    """Format a datetime as ``YYYY-MM-DDTHH:MM:SS.ffffffZ`` in UTC.

    The fixed width keeps lexical ordering equal to chronological ordering,
    which the persistence layer relies on for string-typed columns.
    """
    return ensure_utc(dt).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def iso_week_key(dt: datetime) -> str:
    """Return the ISO week a timestamp falls into, e.g. ``2026-W42``.

    Example:
        >>> iso_week_key(datetime(2026, 10, 19, tzinfo=timezone.utc))
        '2026-W43'
    """
    year, week, _ = ensure_utc(dt).isocalendar()
    return f"{year}-W{week:02d}"


def age_in_days(created_at: Optional[datetime], now: datetime) -> Optional[float]:
    """Fractional days between ``created_at`` and ``now`` (None when unknown)."""
    if created_at is None:
        return None
    delta: timedelta = ensure_utc(now) - ensure_utc(created_at)
    return max(delta.total_seconds(), 0.0) / 86400
