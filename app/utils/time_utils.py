"""
Timestamp helpers. Firestore hands back datetimes (with nanoseconds) for
server timestamps, while documents written by older clients carry ISO
strings or epoch milliseconds.
"""
from datetime import datetime, timezone
from typing import Any, Optional


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _to_iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_iso(text: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


def timestamp_to_iso(value: Any) -> Optional[str]:
    """Stored timestamp as an ISO string; strings pass through untouched."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _to_iso(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _to_iso(datetime.fromtimestamp(value / 1000, tz=timezone.utc))
    if isinstance(value, str):
        return value
    return None


def comparable_timestamp(value: Any) -> str:
    return timestamp_to_iso(value) or ""


def to_iso_or_none(value: Any) -> Optional[str]:
    """Like timestamp_to_iso, but strings must parse as a date."""
    if isinstance(value, str):
        trimmed = value.strip()
        parsed = _parse_iso(trimmed) if trimmed else None
        return _to_iso(parsed) if parsed else None
    return timestamp_to_iso(value)


def normalize_iso_date(value: Any) -> str:
    """ISO instant for a loosely typed date, defaulting to now."""
    return to_iso_or_none(value) or now_iso()
