from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from ..common.clock import Clock, SystemClock
from ..common.datetime_utils import to_utc
from ..core.constants import DEFAULT_ATTENDANCE_LIST_LIMIT, DEFAULT_HISTORY_LIMIT
from ..core.enums import AttendanceStatus, RecordOutcome
from ..core.exceptions import NotFoundError, ValidationError
from ..subjects.eligibility import is_eligible
from ..subjects.repository import SubjectRepository
from ..verification.geofence import Coordinate, GeofenceResult, GeofenceVerifier, format_distance
from ..verification.similarity import MatchResult, SimilarityMatcher
from ..windows.model import Window
from ..windows.service import WindowManager
from .factory import AttendanceStrategyFactory
from .model import AttendanceRecord, VerificationMetadata
from .recorder import AttendanceRecorder
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)

FAILED_LOCATION = "location"
FAILED_IDENTITY = "identity"


@dataclass(frozen=True)
class CheckInResult:
    accepted: bool
    window: Window
    outcome: Optional[RecordOutcome] = None
    record: Optional[AttendanceRecord] = None
    geofence: Optional[GeofenceResult] = None
    match: Optional[MatchResult] = None
    failed_check: Optional[str] = None
    message: str = ""

    def to_dict(self) -> dict:
        data = {
            "accepted": self.accepted,
            "outcome": self.outcome.value if self.outcome else None,
            "failed_check": self.failed_check,
            "message": self.message,
            "window": self.window.to_dict(),
            "record": self.record.to_dict() if self.record else None,
        }
        if self.geofence is not None:
            data["location"] = {
                "outcome": self.geofence.outcome.value,
                "distance_meters": self.geofence.distance_m,
                "radius_meters": self.geofence.radius_m,
            }
        if self.match is not None:
            data["identity"] = {
                "is_match": self.match.is_match,
                "score": self.match.score,
                "threshold": self.match.threshold,
            }
        return data


@dataclass(frozen=True)
class WindowReport:
    window: Window
    records: Sequence[AttendanceRecord]
    counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "window": self.window.to_dict(),
            "counts": dict(self.counts),
            "total": len(self.records),
            "records": [r.to_dict() for r in self.records],
        }


class CheckInService:
    """Use case: a student proves presence and gets a record.

    Pipeline: window lookup, open check, eligibility, geofence, similarity,
    status decision, record.
    """

    def __init__(
        self,
        windows: WindowManager,
        subjects: SubjectRepository,
        attendance: AttendanceRepository,
        recorder: AttendanceRecorder,
        *,
        matcher: Optional[SimilarityMatcher] = None,
        geofence: Optional[GeofenceVerifier] = None,
        strategy_factory: Optional[AttendanceStrategyFactory] = None,
        clock: Optional[Clock] = None,
        require_face: bool = True,
    ):
        self._windows = windows
        self._subjects = subjects
        self._attendance = attendance
        self._recorder = recorder
        self._matcher = matcher or SimilarityMatcher()
        self._geofence = geofence or GeofenceVerifier()
        self._factory = strategy_factory or AttendanceStrategyFactory()
        self._clock = clock or SystemClock()
        self._require_face = bool(require_face)

    def _resolve_window(self, window_id: Optional[int], code: Optional[str]) -> Window:
        if window_id is not None:
            return self._windows.get(window_id)
        if code is not None:
            return self._windows.find_by_code(code)
        raise ValidationError("Session id or attendance code is required")

    def check_in(
        self,
        subject_handle: str,
        *,
        window_id: Optional[int] = None,
        code: Optional[str] = None,
        location: Optional[Coordinate] = None,
        feature_vector: Optional[Sequence[float]] = None,
        now: Optional[datetime] = None,
    ) -> CheckInResult:
        now = to_utc(now or self._clock.now())
        window = self._windows.require_open(self._resolve_window(window_id, code), now=now)

        subject = self._subjects.get_by_handle(subject_handle)
        if subject is None:
            raise NotFoundError(f"Subject {subject_handle} not found")
        if not is_eligible(subject):
            return CheckInResult(
                accepted=False,
                window=window,
                outcome=RecordOutcome.INELIGIBLE,
                message="Attendance is not tracked for this account",
            )

        existing = self._recorder.find(subject.handle, window.window_id)
        if existing is not None:
            return CheckInResult(
                accepted=True,
                window=window,
                outcome=RecordOutcome.EXISTING,
                record=existing,
                message="Attendance already marked",
            )

        fence = self._geofence.verify(location, window.origin, window.radius_m)
        if not fence.passed and not fence.skipped:
            logger.info(
                "Location check failed for %s in window %s: %.1f m > %.1f m",
                subject.handle, window.window_id, fence.distance_m, fence.radius_m,
            )
            return CheckInResult(
                accepted=False,
                window=window,
                geofence=fence,
                failed_check=FAILED_LOCATION,
                message=(
                    f"You are {format_distance(fence.distance_m)} away "
                    f"(allowed {format_distance(fence.radius_m)})"
                ),
            )

        match: Optional[MatchResult] = None
        if self._require_face or feature_vector is not None:
            if feature_vector is None:
                raise ValidationError("Face capture is required")
            match = self._matcher.match(feature_vector, subject.face_embedding)
            if not match.is_match:
                logger.info(
                    "Identity check failed for %s in window %s: %.3f < %.3f",
                    subject.handle, window.window_id, match.score, match.threshold,
                )
                return CheckInResult(
                    accepted=False,
                    window=window,
                    geofence=fence,
                    match=match,
                    failed_check=FAILED_IDENTITY,
                    message=f"Face match {match.score:.2f} is below the required {match.threshold:.2f}",
                )

        strategy = self._factory.for_checkin(now=now, window=window)
        decision = strategy.decide_checkin(now=now, window=window)

        metadata = VerificationMetadata(
            similarity_score=match.score if match else None,
            distance_m=fence.distance_m,
            location_verified=None if fence.skipped else fence.passed,
            face_verified=match.is_match if match else None,
        )
        result = self._recorder.record(
            subject.handle,
            window.window_id,
            decision.status,
            metadata,
            window_name=window.name,
            subject=subject,
            now=now,
        )

        if result.outcome == RecordOutcome.CREATED:
            message = decision.note or "Attendance marked"
        elif result.outcome == RecordOutcome.EXISTING:
            message = "Attendance already marked"
        else:
            message = "Attendance is not tracked for this account"
        return CheckInResult(
            accepted=result.outcome != RecordOutcome.INELIGIBLE,
            window=window,
            outcome=result.outcome,
            record=result.record,
            geofence=fence,
            match=match,
            message=message,
        )

    def history(self, subject_handle: str, *, limit: int = DEFAULT_HISTORY_LIMIT) -> List[AttendanceRecord]:
        return list(self._attendance.list_for_subject(subject_handle, limit=int(limit)))

    def recent(self, *, limit: int = DEFAULT_ATTENDANCE_LIST_LIMIT) -> List[AttendanceRecord]:
        return list(self._attendance.list_recent(limit=int(limit)))

    def active_window_status(self, subject_handle: str, *, now: Optional[datetime] = None) -> dict:
        """What the student dashboard shows: the open window and whether they are marked.

        Windows are not tied to a class roster, so this is the newest active
        window system-wide. When several instructors have windows open at
        once, the older ones are reached by code or id, not from here.
        """

        now = to_utc(now or self._clock.now())
        window = self._windows.get_active()
        if window is None or not window.is_open(now):
            return {"window": None, "marked": False, "record": None}

        record = self._recorder.find(subject_handle, window.window_id)
        return {
            "window": window.to_dict(),
            "marked": record is not None,
            "record": record.to_dict() if record else None,
        }

    def window_report(self, window_id: int) -> WindowReport:
        window = self._windows.get(window_id)
        records = list(self._attendance.list_for_window(window.window_id))
        counts = Counter(r.status.value for r in records)
        return WindowReport(
            window=window,
            records=records,
            counts={s.value: counts.get(s.value, 0) for s in AttendanceStatus},
        )
