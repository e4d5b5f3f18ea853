"""
UTC timestamp utilities shared by every timespine module.

Every timestamp that crosses the engine boundary is normalised here so the
reconciliation code can compare datetimes without caring whether a caller
or a database driver handed it a naive value.

Features:
    - **INFINITE:** Sentinel "still true / still believed" timestamp
    - **utc_now():** Timezone-aware UTC datetime
    - **ensure_utc():** Naive values are treated as UTC
    - **to_iso8601() / from_iso8601():** Safe serialization round-trip
    - **generate_record_id():** Time-sortable ULID-like identifiers

Tags:
    timestamps, utc, infinite-date, ulid, timespine

STDLIB ONLY - NO PYDANTIC.
"""

from __future__ import annotations

import random
import time
from datetime import UTC, date, datetime

# Greater than any realistic effective or system date.
INFINITE: datetime = datetime(3000, 1, 1, tzinfo=UTC)


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime | date) -> datetime:
    """Return *value* as a timezone-aware UTC datetime.

    Naive datetimes are assumed to already be UTC (SQLite hands them back
    that way).  Plain dates become midnight UTC.
    """
    if not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_naive_utc(value: datetime) -> datetime:
    """Strip tzinfo after converting to UTC (for DateTime columns)."""
    return ensure_utc(value).replace(tzinfo=None)


def is_infinite(value: datetime | None) -> bool:
    """True if *value* is the INFINITE sentinel."""
    return value is not None and ensure_utc(value) == INFINITE


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to ISO 8601 string."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()


def from_iso8601(s: str | datetime | date | None) -> datetime | None:
    """Parse ISO 8601 string to a UTC datetime.

    Accepts an already-parsed datetime so JSON payloads and Python callers
    can share one code path.
    """
    if s is None:
        return None
    if isinstance(s, (datetime, date)):
        return ensure_utc(s)
    return ensure_utc(datetime.fromisoformat(s.replace("Z", "+00:00")))


def generate_record_id() -> str:
    """
    Generate a ULID-like identifier.

    Format: 26 characters, base32 encoded, time-sortable.
    """
    # Time component: milliseconds since epoch (48 bits -> 10 chars)
    timestamp_ms = int(time.time() * 1000)
    timestamp_chars = _encode_base32(timestamp_ms, 10)

    # Random component (80 bits -> 16 chars)
    random_part = "".join(random.choices(_ENCODING, k=16))

    return timestamp_chars + random_part


# ULID base32 alphabet (Crockford's)
_ENCODING = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_ENCODING_LEN = len(_ENCODING)


def _encode_base32(value: int, length: int) -> str:
    """Encode integer to base32 string of fixed length."""
    result = []
    for _ in range(length):
        result.append(_ENCODING[value % _ENCODING_LEN])
        value //= _ENCODING_LEN
    return "".join(reversed(result))


__all__ = [
    "INFINITE",
    "ensure_utc",
    "from_iso8601",
    "generate_record_id",
    "is_infinite",
    "to_iso8601",
    "to_naive_utc",
    "utc_now",
]
