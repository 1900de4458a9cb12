"""UTC instant helpers shared by the feature and backtest layers."""

import time
from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def now_ms() -> int:
    """Current UTC time in epoch milliseconds."""
    return int(time.time() * 1000)


def from_ms(timestamp_ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return _EPOCH + timedelta(milliseconds=timestamp_ms)


def to_ms(moment: datetime) -> int:
    """Convert a datetime to epoch milliseconds (naive values are treated as UTC)."""
    return (ensure_utc(moment) - _EPOCH) // timedelta(milliseconds=1)


def ensure_utc(moment: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def to_iso_zulu(moment: datetime) -> str:
    """Format as second-precision ISO-8601 with a ``Z`` suffix."""
    return ensure_utc(moment).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_utc(value: str) -> datetime:
    """Parse an ISO-8601 date or datetime string as a UTC instant.

    Accepts ``2024-01-01``, ``2024-01-01 12:00``, ``2024-01-01T12:00:00Z``
    and offset-qualified forms. Values without an offset are read as UTC.

    Raises:
        ValueError: If the string is not a recognizable ISO-8601 value.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def utc_date_key(epoch_seconds: int) -> str:
    """UTC calendar date (YYYY-MM-DD) of an epoch-seconds timestamp."""
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).strftime("%Y-%m-%d")
