"""Timestamp normalization for client supplied instants.

Clients report capture times in whatever shape their platform produces:
ISO strings with or without an offset, RFC 2822 dates, epoch numbers or
nothing at all. Everything that reaches the database goes through
``normalize_instant`` so the store only ever holds UTC instants with
millisecond precision, and everything that leaves the API goes through
``isoformat_utc`` so the wire form is ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

Normalization never raises. Unusable input falls back to the current time.
ISO strings without an offset are read as UTC, not as server local time.
"""

from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any

# Epoch values above this are treated as milliseconds
_EPOCH_MILLIS_THRESHOLD = 100_000_000_000


def utc_now() -> datetime:
    """Current instant, truncated to millisecond precision."""
    return _truncate(datetime.now(UTC))


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def isoformat_utc(value: datetime | None) -> str | None:
    """Format a stored instant in canonical wire form."""
    if value is None:
        return None
    text = _truncate(ensure_utc(value)).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def normalize_instant(value: Any) -> datetime:
    """Convert an arbitrary timestamp representation into an aware UTC datetime.

    Args:
        value: ISO-8601 / RFC 2822 string, epoch seconds or milliseconds,
            datetime, or None

    Returns:
        Parsed instant, or the current time if the value is empty or unparseable
    """
    parsed = _parse(value)
    if parsed is None:
        return utc_now()
    return parsed


def normalize_timestamp(value: Any) -> str:
    """Normalize a timestamp into its canonical ISO-8601 UTC string.

    Idempotent: a canonical string is returned unchanged.
    """
    return isoformat_utc(normalize_instant(value))  # type: ignore[return-value]


def _truncate(value: datetime) -> datetime:
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def _from_epoch(number: float) -> datetime | None:
    if abs(number) >= _EPOCH_MILLIS_THRESHOLD:
        number = number / 1000
    try:
        return datetime.fromtimestamp(number, UTC)
    except (OverflowError, OSError, ValueError):
        return None


def _parse(value: Any) -> datetime | None:
    if value is None or isinstance(value, bool):
        return None

    parsed: datetime | None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, int | float):
        parsed = _from_epoch(float(value))
    elif isinstance(value, str):
        parsed = _parse_text(value.strip())
    else:
        return None

    if parsed is None:
        return None

    try:
        return _truncate(ensure_utc(parsed))
    except (OverflowError, ValueError):
        return None


def _parse_text(text: str) -> datetime | None:
    if not text:
        return None

    if text.isdigit():
        return _from_epoch(float(text))

    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass

    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None
