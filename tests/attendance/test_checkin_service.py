import math
from datetime import timedelta

import pytest

from src.session_attendance.session_attendance.attendance.recorder import AttendanceRecorder
from src.session_attendance.session_attendance.attendance.service import CheckInService
from src.session_attendance.session_attendance.core.constants import EARTH_RADIUS_METERS
from src.session_attendance.session_attendance.core.enums import AttendanceStatus, RecordOutcome, Role
from src.session_attendance.session_attendance.core.exceptions import (
    NoActiveWindowError,
    NotEnrolledError,
    ValidationError,
)
from src.session_attendance.session_attendance.verification.geofence import Coordinate
from src.session_attendance.session_attendance.verification.similarity import SimilarityMatcher
from src.session_attendance.session_attendance.windows.model import WindowConfig
from src.session_attendance.session_attendance.windows.service import WindowManager
from tests.fakes import make_subject, unit, vector_with_score

DIM = 8
ORIGIN = Coordinate(12.90, 77.60)


def north_of(meters: float) -> Coordinate:
    return Coordinate(ORIGIN.latitude + math.degrees(meters / EARTH_RADIUS_METERS), ORIGIN.longitude)


@pytest.fixture
def manager(windows, clock):
    return WindowManager(windows, clock=clock)


@pytest.fixture
def service(manager, subjects, attendance, clock):
    subjects.add(make_subject("s1001", embedding=unit(DIM)))
    subjects.add(make_subject("s1002"))
    subjects.add(make_subject("s1004", is_active=False, embedding=unit(DIM)))
    subjects.add(make_subject("teacher1", role=Role.TEACHER, embedding=unit(DIM)))
    recorder = AttendanceRecorder(attendance, subjects, clock=clock)
    return CheckInService(
        manager,
        subjects,
        attendance,
        recorder,
        matcher=SimilarityMatcher(threshold=0.65, dimension=DIM),
        clock=clock,
    )


@pytest.fixture
def window(manager):
    return manager.open(
        "teacher1",
        WindowConfig(name="Physics", duration_minutes=5, origin=ORIGIN, radius_m=150),
    )


def test_check_in_present_inside_fence_with_matching_face(service, window, attendance, fixed_now):
    result = service.check_in(
        "s1001", window_id=window.window_id, location=north_of(80), feature_vector=vector_with_score(0.80, DIM)
    )

    assert result.accepted
    assert result.outcome == RecordOutcome.CREATED
    assert result.failed_check is None
    assert result.record.status == AttendanceStatus.PRESENT
    assert result.record.recorded_at == fixed_now
    assert result.record.window_name == "Physics"
    assert result.record.metadata.distance_m == pytest.approx(80.0, abs=0.01)
    assert result.record.metadata.similarity_score == pytest.approx(0.80)
    assert result.record.metadata.location_verified is True
    assert result.record.metadata.face_verified is True
    assert len(attendance.list_for_window(window.window_id)) == 1


def test_check_in_twice_returns_existing(service, window, attendance, clock):
    args = dict(window_id=window.window_id, location=north_of(80), feature_vector=unit(DIM))
    first = service.check_in("s1001", **args)
    clock.advance(minutes=1)
    second = service.check_in("s1001", **args)

    assert second.accepted
    assert second.outcome == RecordOutcome.EXISTING
    assert second.record == first.record
    assert len(attendance.list_for_window(window.window_id)) == 1


def test_check_in_by_code(service, window):
    result = service.check_in(
        "s1001", code=window.code.lower(), location=north_of(10), feature_vector=unit(DIM)
    )

    assert result.outcome == RecordOutcome.CREATED
    assert result.window.window_id == window.window_id


def test_location_failure_is_a_result_not_an_error(service, window, attendance):
    result = service.check_in(
        "s1001", window_id=window.window_id, location=north_of(210), feature_vector=unit(DIM)
    )

    assert not result.accepted
    assert result.failed_check == "location"
    assert result.geofence.distance_m == pytest.approx(210.0, abs=0.01)
    assert result.message == "You are 210 m away (allowed 150 m)"
    assert result.match is None
    assert attendance.list_for_window(window.window_id) == []


def test_identity_failure_reports_score_and_threshold(service, window, attendance):
    result = service.check_in(
        "s1001", window_id=window.window_id, location=north_of(80), feature_vector=vector_with_score(0.52, DIM)
    )

    assert not result.accepted
    assert result.failed_check == "identity"
    assert result.match.score == pytest.approx(0.52)
    assert result.match.threshold == 0.65
    assert result.message == "Face match 0.52 is below the required 0.65"
    assert attendance.list_for_window(window.window_id) == []


def test_not_enrolled(service, window):
    with pytest.raises(NotEnrolledError):
        service.check_in("s1002", window_id=window.window_id, location=north_of(10), feature_vector=unit(DIM))


def test_face_capture_required(service, window):
    with pytest.raises(ValidationError):
        service.check_in("s1001", window_id=window.window_id, location=north_of(10))


def test_location_required_when_window_is_fenced(service, window):
    with pytest.raises(ValidationError):
        service.check_in("s1001", window_id=window.window_id, feature_vector=unit(DIM))


def test_window_without_fence_skips_location(service, manager):
    window = manager.open("teacher2", WindowConfig(name="Online", duration_minutes=30))

    result = service.check_in("s1001", window_id=window.window_id, feature_vector=unit(DIM))

    assert result.accepted
    assert result.record.metadata.location_verified is None
    assert result.record.metadata.distance_m is None


@pytest.mark.parametrize("handle", ["s1004", "teacher1"])
def test_ineligible_subjects_are_not_recorded(service, window, attendance, handle):
    result = service.check_in(handle, window_id=window.window_id, location=north_of(10), feature_vector=unit(DIM))

    assert not result.accepted
    assert result.outcome == RecordOutcome.INELIGIBLE
    assert attendance.list_for_window(window.window_id) == []


def test_expired_window_rejected(service, window, clock):
    clock.advance(minutes=5)

    with pytest.raises(NoActiveWindowError):
        service.check_in("s1001", window_id=window.window_id, location=north_of(10), feature_vector=unit(DIM))


def test_window_id_or_code_required(service, window):
    with pytest.raises(ValidationError):
        service.check_in("s1001", location=north_of(10), feature_vector=unit(DIM))


def test_late_check_in(service, manager, clock):
    window = manager.open("teacher2", WindowConfig(name="Seminar", duration_minutes=60, late_after_minutes=10))
    clock.advance(minutes=15)

    result = service.check_in("s1001", window_id=window.window_id, feature_vector=unit(DIM))

    assert result.record.status == AttendanceStatus.LATE
    assert result.message == "Checked in 15 min after opening"


def test_face_optional_when_not_required(manager, subjects, attendance, clock):
    subjects.add(make_subject("s1002"))
    service = CheckInService(
        manager,
        subjects,
        attendance,
        AttendanceRecorder(attendance, subjects, clock=clock),
        matcher=SimilarityMatcher(dimension=DIM),
        clock=clock,
        require_face=False,
    )
    window = manager.open("teacher1", WindowConfig(name="Quiz", duration_minutes=5))

    result = service.check_in("s1002", window_id=window.window_id)

    assert result.accepted
    assert result.record.metadata.face_verified is None


def test_history_and_report(service, window, clock):
    service.check_in("s1001", window_id=window.window_id, location=north_of(10), feature_vector=unit(DIM))

    history = service.history("s1001")
    report = service.window_report(window.window_id)

    assert [r.window_id for r in history] == [window.window_id]
    assert report.counts["present"] == 1
    assert report.counts["absent"] == 0
    assert report.to_dict()["total"] == 1


def test_active_window_status(service, window, clock):
    before = service.active_window_status("s1001")
    service.check_in("s1001", window_id=window.window_id, location=north_of(10), feature_vector=unit(DIM))
    after = service.active_window_status("s1001")
    clock.advance(minutes=10)
    expired = service.active_window_status("s1001")

    assert before["window"]["id"] == window.window_id and not before["marked"]
    assert after["marked"]
    assert expired == {"window": None, "marked": False, "record": None}


def test_active_window_status_shows_newest_window_system_wide(service, manager, window, clock):
    clock.advance(minutes=1)
    newer = manager.open("teacher2", WindowConfig(name="Chemistry", duration_minutes=30))

    status = service.active_window_status("s1001")

    assert status["window"]["id"] == newer.window_id
    assert manager.get(window.window_id).is_active


def test_recent_lists_records_across_windows(service, manager, window, clock):
    service.check_in("s1001", window_id=window.window_id, location=north_of(10), feature_vector=unit(DIM))
    clock.advance(minutes=1)
    other = manager.open("teacher2", WindowConfig(name="Chemistry", duration_minutes=30))
    service.check_in("s1001", window_id=other.window_id, feature_vector=unit(DIM))

    assert [r.window_id for r in service.recent(limit=10)] == [other.window_id, window.window_id]
    assert len(service.recent(limit=1)) == 1
