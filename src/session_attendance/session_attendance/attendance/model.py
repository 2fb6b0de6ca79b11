from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from ..common.datetime_utils import isoformat_utc, to_utc
from ..core.enums import AttendanceStatus, RecordOutcome


@dataclass(frozen=True)
class VerificationMetadata:
    """Audit trail of the checks behind a record.

    ``None`` flags mean the check did not apply (e.g. no geofence on the window,
    or an absence written by the sweeper).
    """

    similarity_score: Optional[float] = None
    distance_m: Optional[float] = None
    location_verified: Optional[bool] = None
    face_verified: Optional[bool] = None

    def to_dict(self) -> dict:
        return {
            "similarity_score": self.similarity_score,
            "distance_meters": self.distance_m,
            "location_verified": self.location_verified,
            "face_verified": self.face_verified,
        }


@dataclass(frozen=True)
class NewAttendanceRecord:
    """Insert model (no id yet)."""

    subject_handle: str
    window_id: int
    status: AttendanceStatus
    recorded_at: datetime
    subject_name: Optional[str] = None
    window_name: Optional[str] = None
    metadata: VerificationMetadata = field(default_factory=VerificationMetadata)

    @property
    def attendance_date(self) -> date:
        return to_utc(self.recorded_at).date()


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one outcome per (subject, window)."""

    attendance_id: int
    subject_handle: str
    window_id: int
    status: AttendanceStatus
    recorded_at: datetime
    attendance_date: date
    subject_name: Optional[str] = None
    window_name: Optional[str] = None
    metadata: VerificationMetadata = field(default_factory=VerificationMetadata)

    def to_dict(self) -> dict:
        return {
            "id": self.attendance_id,
            "subject": self.subject_handle,
            "name": self.subject_name,
            "window_id": self.window_id,
            "window_name": self.window_name,
            "status": self.status.value,
            "recorded_at": isoformat_utc(self.recorded_at),
            "date": self.attendance_date.isoformat(),
            "verification": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class RecordResult:
    outcome: RecordOutcome
    record: Optional[AttendanceRecord] = None

    @property
    def created(self) -> bool:
        return self.outcome == RecordOutcome.CREATED
