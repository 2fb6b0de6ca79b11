from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..common.clock import Clock, SystemClock
from ..common.datetime_utils import to_utc
from ..core.enums import AttendanceStatus, RecordOutcome
from ..core.exceptions import DuplicateRecordError, NotFoundError, PersistenceError
from ..subjects.eligibility import is_eligible
from ..subjects.model import Subject
from ..subjects.repository import SubjectRepository
from .model import AttendanceRecord, NewAttendanceRecord, RecordResult, VerificationMetadata
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


class AttendanceRecorder:
    """The single write path for attendance records.

    At most one record exists per (subject, window). The storage-level unique
    key is what guarantees this; the pre-read only saves a round trip.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        subjects: SubjectRepository,
        *,
        clock: Optional[Clock] = None,
    ):
        self._attendance = attendance
        self._subjects = subjects
        self._clock = clock or SystemClock()

    def find(self, subject_handle: str, window_id: int) -> Optional[AttendanceRecord]:
        return self._attendance.get_for_subject_and_window(subject_handle, int(window_id))

    def record(
        self,
        subject_handle: str,
        window_id: int,
        status: AttendanceStatus,
        metadata: Optional[VerificationMetadata] = None,
        *,
        window_name: Optional[str] = None,
        subject: Optional[Subject] = None,
        now: Optional[datetime] = None,
    ) -> RecordResult:
        subject = subject or self._subjects.get_by_handle(subject_handle)
        if subject is None:
            raise NotFoundError(f"Subject {subject_handle} not found")
        if not is_eligible(subject):
            logger.debug("Skipping record for ineligible subject %s", subject_handle)
            return RecordResult(outcome=RecordOutcome.INELIGIBLE)

        existing = self.find(subject.handle, window_id)
        if existing is not None:
            return RecordResult(outcome=RecordOutcome.EXISTING, record=existing)

        new_record = NewAttendanceRecord(
            subject_handle=subject.handle,
            window_id=int(window_id),
            status=status,
            recorded_at=to_utc(now or self._clock.now()),
            subject_name=subject.full_name,
            window_name=window_name,
            metadata=metadata or VerificationMetadata(),
        )
        try:
            self._attendance.create(new_record)
        except DuplicateRecordError:
            # Lost the race to a concurrent writer; theirs is the record.
            existing = self.find(subject.handle, window_id)
            if existing is None:
                raise
            return RecordResult(outcome=RecordOutcome.EXISTING, record=existing)

        created = self.find(subject.handle, window_id)
        if created is None:
            raise PersistenceError(f"Record for {subject.handle} in window {window_id} vanished after insert")

        logger.info("Recorded %s for %s in window %s", status.value, subject.handle, window_id)
        return RecordResult(outcome=RecordOutcome.CREATED, record=created)
