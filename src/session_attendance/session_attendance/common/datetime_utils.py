from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional

import pytz

from ..core.exceptions import ValidationError


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date: {value!r} (expected YYYY-MM-DD)")


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 timestamp. A trailing ``Z`` is accepted as UTC."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Timestamp must be a non-empty ISO-8601 string")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid timestamp: {value!r}")


def to_utc(value: datetime, *, local_tz: str = "UTC") -> datetime:
    """Normalize to aware UTC.

    Naive values are interpreted in ``local_tz`` (the deployment's timezone),
    never in the server process's local time.
    """

    if value.tzinfo is None or value.utcoffset() is None:
        value = pytz.timezone(local_tz).localize(value)
    return value.astimezone(timezone.utc)


def end_of_day_utc(day: date, *, local_tz: str = "UTC") -> datetime:
    """Last second of ``day`` in ``local_tz``, expressed in UTC."""
    return to_utc(datetime.combine(day, time(23, 59, 59)), local_tz=local_tz)


def from_db(value: Optional[datetime]) -> Optional[datetime]:
    """MySQL DATETIME columns hold naive UTC; re-attach the zone."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_db(value: datetime) -> datetime:
    """Inverse of :func:`from_db`."""
    return to_utc(value).replace(tzinfo=None)


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return to_utc(value).isoformat().replace("+00:00", "Z")
