"""Shared timestamp parsing, local-zone normalization and display helpers."""
from __future__ import annotations

import re
from datetime import datetime, timezone

# Unix values above this magnitude are milliseconds, below it seconds.
UNIX_MILLIS_THRESHOLD = 1_000_000_000_000

# fromisoformat on 3.10 accepts only 3 or 6 fractional digits.
_FRACTION = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")

_FALLBACK_FORMATS = (
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
    "%Y-%m-%d %H:%M:%S",
    "%d %b %Y %H:%M:%S",
    "%b %d, %Y %H:%M:%S",
)


def to_local(value: datetime) -> datetime | None:
    """Return an aware datetime in the local zone.

    Naive values are taken to already be local wall-clock time.
    """
    try:
        return value.astimezone()
    except (OverflowError, OSError, ValueError):
        return None


def parse_iso_datetime(token: str) -> datetime | None:
    cleaned = token.strip()
    if not cleaned:
        return None
    if cleaned.endswith(("Z", "z")):
        cleaned = cleaned[:-1] + "+00:00"
    cleaned = _FRACTION.sub(lambda m: f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}", cleaned, count=1)
    try:
        return datetime.fromisoformat(cleaned)
    except ValueError:
        return None


def parse_fallback_datetime(token: str) -> datetime | None:
    cleaned = " ".join(token.strip().split())
    if not cleaned:
        return None
    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
    return None


def from_unix(value: int) -> datetime | None:
    """Interpret an integer as Unix seconds or milliseconds."""
    try:
        if abs(value) > UNIX_MILLIS_THRESHOLD:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def format_iso(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.isoformat()


def format_display(value: datetime | None) -> str:
    """Locale-formatted date and time, or empty when unknown."""
    if value is None:
        return ""
    return value.strftime("%x %X")


def format_short(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.strftime("%m/%d %H:%M")


def newest_first_key(value: datetime | None) -> tuple[int, float]:
    """Sort key for a reverse (newest-first) sort that puts unknown timestamps last."""
    if value is None:
        return (0, 0.0)
    try:
        return (1, value.timestamp())
    except (OverflowError, OSError, ValueError):
        return (0, 0.0)
