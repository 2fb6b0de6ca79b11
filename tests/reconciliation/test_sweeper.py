from datetime import timedelta

import pytest

from src.session_attendance.session_attendance.attendance.recorder import AttendanceRecorder
from src.session_attendance.session_attendance.core.enums import AttendanceStatus, Role
from src.session_attendance.session_attendance.reconciliation.sweeper import ReconciliationSweeper
from src.session_attendance.session_attendance.windows.model import WindowConfig
from src.session_attendance.session_attendance.windows.service import WindowManager
from tests.fakes import make_subject


@pytest.fixture
def manager(windows, clock):
    return WindowManager(windows, clock=clock)


@pytest.fixture
def roster(subjects):
    for handle in ("s1001", "s1002", "s1003"):
        subjects.add(make_subject(handle))
    subjects.add(make_subject("s1004", is_active=False))
    subjects.add(make_subject("teacher1", role=Role.TEACHER))
    subjects.add(make_subject("admin", role=Role.ADMIN))
    return subjects


def _sweeper(manager, subjects, attendance, clock, **kwargs):
    return ReconciliationSweeper(manager, subjects, attendance, clock=clock, **kwargs)


def test_end_to_end_present_then_absent(manager, roster, attendance, clock):
    window = manager.open("teacher1", WindowConfig(name="Physics", duration_minutes=5))
    AttendanceRecorder(attendance, roster, clock=clock).record(
        "s1001", window.window_id, AttendanceStatus.PRESENT, window_name=window.name
    )
    sweeper = _sweeper(manager, roster, attendance, clock)

    clock.advance(minutes=6)
    summary = sweeper.run_once()

    records = {r.subject_handle: r for r in attendance.list_for_window(window.window_id)}
    assert set(records) == {"s1001", "s1002", "s1003"}
    assert records["s1001"].status == AttendanceStatus.PRESENT
    assert records["s1002"].status == AttendanceStatus.ABSENT
    assert records["s1003"].status == AttendanceStatus.ABSENT
    assert records["s1002"].recorded_at == clock.now()
    assert records["s1002"].window_name == "Physics"
    assert not manager.get(window.window_id).is_active
    assert summary.windows_processed == 1
    assert summary.windows_closed == 1
    assert summary.absences_inserted == 2

    clock.advance(minutes=1)
    again = sweeper.run_once()

    assert again.windows_processed == 0
    assert len(attendance.list_for_window(window.window_id)) == 3


def test_unexpired_window_is_left_alone(manager, roster, attendance, clock):
    window = manager.open("teacher1", WindowConfig(name="Physics", duration_minutes=5))

    summary = _sweeper(manager, roster, attendance, clock).run_once()

    assert summary.windows_processed == 0
    assert manager.get(window.window_id).is_active
    assert attendance.list_for_window(window.window_id) == []


def test_expiry_boundary_counts_as_expired(manager, roster, attendance, clock):
    window = manager.open("teacher1", WindowConfig(name="Physics", duration_minutes=5))

    summary = _sweeper(manager, roster, attendance, clock).run_once(now=window.expires_at)

    assert summary.windows_closed == 1


def test_records_from_other_windows_do_not_count(manager, roster, attendance, clock):
    earlier = manager.open("teacher2", WindowConfig(name="Earlier", duration_minutes=60))
    AttendanceRecorder(attendance, roster, clock=clock).record("s1001", earlier.window_id, AttendanceStatus.PRESENT)
    window = manager.open("teacher1", WindowConfig(name="Physics", duration_minutes=5))

    clock.advance(minutes=6)
    _sweeper(manager, roster, attendance, clock).run_once()

    assert {r.subject_handle for r in attendance.list_for_window(window.window_id)} == {"s1001", "s1002", "s1003"}
    assert manager.get(earlier.window_id).is_active


def test_batches_respect_batch_size(manager, subjects, attendance, clock):
    for i in range(7):
        subjects.add(make_subject(f"s{i:04d}"))
    manager.open("teacher1", WindowConfig(name="Big", duration_minutes=5))

    clock.advance(minutes=6)
    summary = _sweeper(manager, subjects, attendance, clock, batch_size=3).run_once()

    assert attendance.bulk_calls == [3, 3, 1]
    assert summary.absences_inserted == 7


def test_batch_failure_falls_back_to_single_inserts(manager, roster, attendance, clock):
    window = manager.open("teacher1", WindowConfig(name="Physics", duration_minutes=5))
    attendance.fail_bulk = True
    attendance.fail_handles = {"s1003"}

    clock.advance(minutes=6)
    summary = _sweeper(manager, roster, attendance, clock).run_once()

    result = summary.results[0]
    assert result.inserted == 2
    assert result.failures == 1
    assert result.closed
    assert summary.insert_failures == 1
    assert {r.subject_handle for r in attendance.list_for_window(window.window_id)} == {"s1001", "s1002"}


def test_late_check_in_during_sweep_counts_as_already_recorded(manager, roster, attendance, clock):
    window = manager.open("teacher1", WindowConfig(name="Physics", duration_minutes=5))
    real_recorded = attendance.recorded_handles

    def stale_recorded(window_id):
        handles = real_recorded(window_id)
        # s1002 checks in right after the sweeper read the existing set
        AttendanceRecorder(attendance, roster, clock=clock).record("s1002", window_id, AttendanceStatus.PRESENT)
        return handles

    attendance.recorded_handles = stale_recorded

    clock.advance(minutes=6)
    summary = _sweeper(manager, roster, attendance, clock).run_once()

    result = summary.results[0]
    assert result.already_recorded == 1
    assert result.inserted == 2
    assert result.closed
    records = {r.subject_handle: r.status for r in attendance.list_for_window(window.window_id)}
    assert records["s1002"] == AttendanceStatus.PRESENT


def test_outright_failure_keeps_window_active(manager, roster, attendance, clock):
    window = manager.open("teacher1", WindowConfig(name="Physics", duration_minutes=5))
    attendance.fail_bulk = True
    attendance.fail_handles = {"s1001", "s1002", "s1003"}
    sweeper = _sweeper(manager, roster, attendance, clock)

    clock.advance(minutes=6)
    summary = sweeper.run_once()

    assert summary.windows_failed == 1
    assert summary.results[0].error
    assert manager.get(window.window_id).is_active

    attendance.fail_bulk = False
    attendance.fail_handles = set()
    retry = sweeper.run_once()

    assert retry.windows_closed == 1
    assert len(attendance.list_for_window(window.window_id)) == 3


def test_roster_load_failure_keeps_window_active(manager, roster, attendance, clock):
    window = manager.open("teacher1", WindowConfig(name="Physics", duration_minutes=5))
    roster.fail_list = True

    clock.advance(minutes=6)
    summary = _sweeper(manager, roster, attendance, clock).run_once()

    assert summary.windows_failed == 1
    assert manager.get(window.window_id).is_active


def test_one_failing_window_does_not_stop_the_others(manager, roster, attendance, clock):
    broken = manager.open("teacher1", WindowConfig(name="Broken", duration_minutes=5))
    healthy = manager.open("teacher2", WindowConfig(name="Healthy", duration_minutes=5))
    real_recorded = attendance.recorded_handles

    def flaky_recorded(window_id):
        if window_id == broken.window_id:
            raise RuntimeError("boom")
        return real_recorded(window_id)

    attendance.recorded_handles = flaky_recorded

    clock.advance(minutes=6)
    summary = _sweeper(manager, roster, attendance, clock).run_once()

    assert summary.windows_processed == 2
    assert summary.windows_failed == 1
    assert manager.get(broken.window_id).is_active
    assert not manager.get(healthy.window_id).is_active


def test_empty_roster_still_closes(manager, subjects, attendance, clock):
    window = manager.open("teacher1", WindowConfig(name="Empty", duration_minutes=5))

    clock.advance(minutes=6)
    summary = _sweeper(manager, subjects, attendance, clock).run_once()

    assert summary.windows_closed == 1
    assert not manager.get(window.window_id).is_active


def test_overlapping_tick_is_skipped(manager, roster, attendance, clock):
    manager.open("teacher1", WindowConfig(name="Physics", duration_minutes=5))
    sweeper = _sweeper(manager, roster, attendance, clock)
    clock.advance(minutes=6)
    nested = {}
    real_list = roster.list_all

    def reentrant_list_all():
        nested["summary"] = sweeper.run_once()
        return real_list()

    roster.list_all = reentrant_list_all

    outer = sweeper.run_once()

    assert nested["summary"].skipped
    assert nested["summary"].windows_processed == 0
    assert not outer.skipped
    assert outer.windows_closed == 1


def test_summary_to_dict(manager, roster, attendance, clock):
    manager.open("teacher1", WindowConfig(name="Physics", duration_minutes=5))
    clock.advance(minutes=6)

    data = _sweeper(manager, roster, attendance, clock).run_once().to_dict()

    assert data["windows_closed"] == 1
    assert data["absences_inserted"] == 3
    assert data["results"][0]["window_name"] == "Physics"
