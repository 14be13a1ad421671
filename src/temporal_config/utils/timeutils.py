"""Time helpers.

All timestamps inside the engine are timezone-aware UTC. Naive datetimes
coming from callers are treated as UTC. The store compares integer
microsecond epochs so window arithmetic is exact.
"""

from datetime import UTC, datetime, timedelta

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MICROSECOND = timedelta(microseconds=1)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Args:
        value: Naive (assumed UTC) or aware datetime.

    Returns:
        Equivalent aware datetime in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_epoch_us(value: datetime) -> int:
    """Exact integer microseconds since the Unix epoch."""
    return (ensure_utc(value) - _EPOCH) // _ONE_MICROSECOND


def from_iso(value: str | None) -> datetime | None:
    """Parse an ISO-8601 string from the store (None passes through)."""
    if value is None:
        return None
    return ensure_utc(datetime.fromisoformat(value))


def to_iso(value: datetime | None) -> str | None:
    """Serialize to ISO-8601 in UTC (None passes through)."""
    if value is None:
        return None
    return ensure_utc(value).isoformat()
