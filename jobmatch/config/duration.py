"""Duration string parsing for intervals, windows and timeouts."""

import re
from datetime import timedelta

_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}

_HUMAN_PATTERN = re.compile(r"(\d+)([smhdw])")
_ISO_PATTERN = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed or is out of range."""


def parse_duration(value: str) -> int:
    """
    Parse a duration string into whole seconds.

    Accepts compact human-readable strings ("90s", "15m", "6h", "30d", "2w",
    "1h30m") and the ISO-8601 subset used by schedulers ("PT15M", "P30D").

    Args:
        value: Duration string

    Returns:
        Duration in seconds (always positive)

    Raises:
        DurationParseError: If the string is empty, malformed, or zero

    Examples:
        >>> parse_duration("30d")
        2592000
        >>> parse_duration("PT20S")
        20
    """
    if not isinstance(value, str) or not value.strip():
        raise DurationParseError("Duration string cannot be empty")

    text = re.sub(r"\s+", "", value).lower()

    if text.startswith("p"):
        seconds = _parse_iso(text.upper(), value)
    else:
        parts = _HUMAN_PATTERN.findall(text)
        if not parts or "".join(n + u for n, u in parts) != text:
            raise DurationParseError(
                f"Invalid duration: '{value}'. Use digits followed by s, m, h, d or w "
                "(e.g. '20s', '15m', '6h', '30d')"
            )
        seconds = sum(int(number) * _UNIT_SECONDS[unit] for number, unit in parts)

    if seconds <= 0:
        raise DurationParseError(f"Duration cannot be zero: '{value}'")
    return seconds


def _parse_iso(text: str, original: str) -> int:
    match = _ISO_PATTERN.match(text)
    if not match or text in ("P", "PT"):
        raise DurationParseError(
            f"Invalid ISO-8601 duration: '{original}'. Expected e.g. 'P30D' or 'PT15M'"
        )
    parts = {key: int(val) for key, val in match.groupdict().items() if val}
    return (
        parts.get("days", 0) * 86400
        + parts.get("hours", 0) * 3600
        + parts.get("minutes", 0) * 60
        + parts.get("seconds", 0)
    )


def parse_timedelta(value: str) -> timedelta:
    """Parse a duration string into a ``timedelta``."""
    return timedelta(seconds=parse_duration(value))


def validate_duration_range(
    seconds: int,
    min_seconds: int,
    max_seconds: int,
    label: str = "Duration",
) -> None:
    """
    Ensure a parsed duration lies within ``[min_seconds, max_seconds]``.

    Args:
        seconds: Parsed duration
        min_seconds: Inclusive lower bound
        max_seconds: Inclusive upper bound
        label: Name used in the error message

    Raises:
        DurationParseError: If the duration is outside the range
    """
    if seconds < min_seconds:
        raise DurationParseError(
            f"{label} too short: {format_duration(seconds)}. "
            f"Minimum is {format_duration(min_seconds)}."
        )
    if seconds > max_seconds:
        raise DurationParseError(
            f"{label} too long: {format_duration(seconds)}. "
            f"Maximum is {format_duration(max_seconds)}."
        )


def format_duration(seconds: int) -> str:
    """Render seconds using the largest whole unit ("15 minutes", "30 days")."""
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            amount = seconds // size
            return f"{amount} {unit}{'s' if amount != 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"
