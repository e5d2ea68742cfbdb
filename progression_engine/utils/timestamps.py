"""Timestamp helpers for stored documents.

Documents persist timestamps as ISO-8601 strings; entities work with
UTC-aware datetimes.
"""

from datetime import UTC, datetime


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (naive values are assumed to be UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def to_iso(dt: datetime | None) -> str | None:
    """Serialize a datetime for storage."""
    dt = ensure_utc_aware(dt)
    return dt.isoformat() if dt else None


def from_iso(value: str | datetime | None) -> datetime | None:
    """Parse a stored timestamp."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc_aware(value)
    return ensure_utc_aware(datetime.fromisoformat(value))


def utc_now() -> datetime:
    return datetime.now(UTC)
