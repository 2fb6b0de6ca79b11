from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping, Optional

from ..common.datetime_utils import isoformat_utc, parse_iso_date, parse_iso_datetime
from ..common.validators import optional_positive_int, require_non_empty, require_positive
from ..core.constants import MAX_WINDOW_MINUTES
from ..core.exceptions import ValidationError
from ..verification.geofence import Coordinate


@dataclass(frozen=True)
class Window:
    """Domain entity: a time-boxed attendance session."""

    window_id: int
    code: str
    name: str
    owner_handle: str
    created_at: datetime
    expires_at: datetime
    is_active: bool
    origin: Optional[Coordinate] = None
    radius_m: Optional[float] = None
    location_name: Optional[str] = None
    late_after_minutes: Optional[int] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def is_open(self, now: datetime) -> bool:
        return self.is_active and not self.is_expired(now)

    def to_dict(self) -> dict:
        return {
            "id": self.window_id,
            "code": self.code,
            "name": self.name,
            "owner": self.owner_handle,
            "created_at": isoformat_utc(self.created_at),
            "expires_at": isoformat_utc(self.expires_at),
            "is_active": self.is_active,
            "origin": (
                {"latitude": self.origin.latitude, "longitude": self.origin.longitude} if self.origin else None
            ),
            "radius_meters": self.radius_m,
            "location_name": self.location_name,
            "late_after_minutes": self.late_after_minutes,
        }


@dataclass(frozen=True)
class WindowConfig:
    """What an instructor asks for when opening a window.

    Expiry precedence: ``expires_at`` > ``expires_on`` (end of that day) >
    ``duration_minutes`` > the manager's default.
    """

    name: str
    expires_at: Optional[datetime] = None
    expires_on: Optional[date] = None
    duration_minutes: Optional[int] = None
    origin: Optional[Coordinate] = None
    radius_m: Optional[float] = None
    location_name: Optional[str] = None
    late_after_minutes: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "WindowConfig":
        if not isinstance(payload, Mapping):
            raise ValidationError("Request body must be a JSON object")

        name = require_non_empty(payload.get("name", ""), "Session name")

        expires_at = payload.get("expires_at")
        expires_on = payload.get("expires_on") or payload.get("date")

        radius = payload.get("radius_meters", payload.get("allowed_radius_meters"))
        origin = Coordinate.from_payload(payload.get("origin") or payload.get("location"))

        location_name = payload.get("location_name")
        return cls(
            name=name,
            expires_at=parse_iso_datetime(expires_at) if expires_at else None,
            expires_on=parse_iso_date(expires_on) if expires_on else None,
            duration_minutes=optional_positive_int(
                payload.get("duration_minutes"), "Duration", max_value=MAX_WINDOW_MINUTES
            ),
            origin=origin,
            radius_m=require_positive(radius, "Radius") if radius not in (None, "") else None,
            location_name=str(location_name).strip() if location_name else None,
            late_after_minutes=optional_positive_int(
                payload.get("late_after_minutes"), "Late threshold", max_value=MAX_WINDOW_MINUTES
            ),
        )
