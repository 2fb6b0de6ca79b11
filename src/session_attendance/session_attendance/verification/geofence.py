"""Location check for check-ins (haversine great-circle distance)."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..common.validators import require_number
from ..core.constants import EARTH_RADIUS_METERS
from ..core.enums import VerificationOutcome
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    @classmethod
    def parse(cls, latitude: Any, longitude: Any) -> "Coordinate":
        lat = require_number(latitude, "Latitude")
        lng = require_number(longitude, "Longitude")
        if not -90.0 <= lat <= 90.0:
            raise ValidationError("Latitude must be between -90 and 90")
        if not -180.0 <= lng <= 180.0:
            raise ValidationError("Longitude must be between -180 and 180")
        return cls(latitude=lat, longitude=lng)

    @classmethod
    def from_payload(cls, payload: Optional[Mapping[str, Any]]) -> Optional["Coordinate"]:
        """Accept ``{"latitude": .., "longitude": ..}`` or ``{"lat": .., "lng": ..}``."""
        if not payload:
            return None
        if not isinstance(payload, Mapping):
            raise ValidationError("Location must be an object with latitude and longitude")
        lat = payload.get("latitude", payload.get("lat"))
        lng = payload.get("longitude", payload.get("lng"))
        if lat is None or lng is None:
            raise ValidationError("Location must include latitude and longitude")
        return cls.parse(lat, lng)


@dataclass(frozen=True)
class GeofenceResult:
    outcome: VerificationOutcome
    distance_m: Optional[float] = None
    radius_m: Optional[float] = None

    @property
    def passed(self) -> bool:
        return self.outcome == VerificationOutcome.PASSED

    @property
    def skipped(self) -> bool:
        return self.outcome == VerificationOutcome.SKIPPED


def haversine_meters(a: Coordinate, b: Coordinate) -> float:
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    d_phi = math.radians(b.latitude - a.latitude)
    d_lambda = math.radians(b.longitude - a.longitude)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def is_within(distance_m: float, radius_m: float) -> bool:
    """Boundary is inclusive: exactly ``radius_m`` away is inside."""
    return distance_m <= radius_m


def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{round(meters)} m"
    return f"{meters / 1000:.2f} km"


class GeofenceVerifier:
    def verify(
        self,
        actor: Optional[Coordinate],
        origin: Optional[Coordinate],
        radius_m: Optional[float],
    ) -> GeofenceResult:
        if origin is None or radius_m is None:
            return GeofenceResult(outcome=VerificationOutcome.SKIPPED)
        if actor is None:
            raise ValidationError("Location is required for this session")

        distance = haversine_meters(actor, origin)
        outcome = VerificationOutcome.PASSED if is_within(distance, radius_m) else VerificationOutcome.FAILED
        return GeofenceResult(outcome=outcome, distance_m=distance, radius_m=float(radius_m))
