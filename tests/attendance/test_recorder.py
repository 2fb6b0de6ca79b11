from datetime import timedelta

import pytest

from src.session_attendance.session_attendance.attendance.model import VerificationMetadata
from src.session_attendance.session_attendance.attendance.recorder import AttendanceRecorder
from src.session_attendance.session_attendance.core.enums import AttendanceStatus, RecordOutcome, Role
from src.session_attendance.session_attendance.core.exceptions import DuplicateRecordError, NotFoundError
from tests.fakes import make_subject


@pytest.fixture
def recorder(attendance, subjects, clock):
    subjects.add(make_subject("s1001", full_name="Asha"))
    subjects.add(make_subject("s1004", is_active=False))
    subjects.add(make_subject("teacher1", role=Role.TEACHER))
    return AttendanceRecorder(attendance, subjects, clock=clock)


def test_record_creates_with_clock_timestamp(recorder, fixed_now):
    meta = VerificationMetadata(similarity_score=0.8, distance_m=80.0, location_verified=True, face_verified=True)

    result = recorder.record("s1001", 7, AttendanceStatus.PRESENT, meta, window_name="Physics")

    assert result.outcome == RecordOutcome.CREATED
    assert result.created
    assert result.record.recorded_at == fixed_now
    assert result.record.attendance_date == fixed_now.date()
    assert result.record.subject_name == "Asha"
    assert result.record.window_name == "Physics"
    assert result.record.metadata == meta


def test_record_is_idempotent(recorder, attendance, clock):
    first = recorder.record("s1001", 7, AttendanceStatus.PRESENT)
    clock.advance(minutes=3)
    second = recorder.record("s1001", 7, AttendanceStatus.LATE)

    assert second.outcome == RecordOutcome.EXISTING
    assert second.record == first.record
    assert len(attendance.list_for_window(7)) == 1


@pytest.mark.parametrize("handle", ["s1004", "teacher1"])
def test_ineligible_subject_is_a_no_op(recorder, attendance, handle):
    result = recorder.record(handle, 7, AttendanceStatus.PRESENT)

    assert result.outcome == RecordOutcome.INELIGIBLE
    assert result.record is None
    assert attendance.list_for_window(7) == []


def test_unknown_subject(recorder):
    with pytest.raises(NotFoundError):
        recorder.record("ghost", 7, AttendanceStatus.PRESENT)


def test_lost_race_returns_winner(recorder, attendance, fixed_now):
    # Another writer inserts between our pre-read and our insert.
    winner = {}
    real_create = attendance.create

    def racing_create(record):
        if not winner:
            winner["id"] = real_create(record.__class__(
                subject_handle=record.subject_handle,
                window_id=record.window_id,
                status=AttendanceStatus.ABSENT,
                recorded_at=fixed_now - timedelta(seconds=1),
            ))
        return real_create(record)

    attendance.create = racing_create

    result = recorder.record("s1001", 7, AttendanceStatus.PRESENT)

    assert result.outcome == RecordOutcome.EXISTING
    assert result.record.attendance_id == winner["id"]
    assert result.record.status == AttendanceStatus.ABSENT


def test_duplicate_without_visible_row_propagates(recorder, attendance):
    def always_duplicate(record):
        raise DuplicateRecordError("Duplicate entry")

    attendance.create = always_duplicate

    with pytest.raises(DuplicateRecordError):
        recorder.record("s1001", 7, AttendanceStatus.PRESENT)
