"""Back-fill ``absent`` records for expired windows, then close them."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from ..attendance.model import NewAttendanceRecord
from ..attendance.repository import AttendanceRepository
from ..common.clock import Clock, SystemClock
from ..common.datetime_utils import to_utc
from ..core.constants import DEFAULT_ABSENCE_BATCH_SIZE
from ..core.enums import AttendanceStatus
from ..core.exceptions import DuplicateRecordError, PersistenceError
from ..subjects.eligibility import eligible_roster
from ..subjects.repository import SubjectRepository
from ..windows.model import Window
from ..windows.service import WindowManager

logger = logging.getLogger(__name__)


@dataclass
class WindowSweepResult:
    window_id: int
    window_name: str
    roster_size: int = 0
    absentees: int = 0
    inserted: int = 0
    already_recorded: int = 0
    failures: int = 0
    closed: bool = False
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return not self.closed

    def to_dict(self) -> dict:
        return {
            "window_id": self.window_id,
            "window_name": self.window_name,
            "roster_size": self.roster_size,
            "absentees": self.absentees,
            "inserted": self.inserted,
            "already_recorded": self.already_recorded,
            "failures": self.failures,
            "closed": self.closed,
            "error": self.error,
        }


@dataclass
class SweepSummary:
    started_at: Optional[datetime] = None
    skipped: bool = False
    results: List[WindowSweepResult] = field(default_factory=list)

    @property
    def windows_processed(self) -> int:
        return len(self.results)

    @property
    def windows_closed(self) -> int:
        return sum(1 for r in self.results if r.closed)

    @property
    def windows_failed(self) -> int:
        return sum(1 for r in self.results if r.failed)

    @property
    def absences_inserted(self) -> int:
        return sum(r.inserted for r in self.results)

    @property
    def duplicates_skipped(self) -> int:
        return sum(r.already_recorded for r in self.results)

    @property
    def insert_failures(self) -> int:
        return sum(r.failures for r in self.results)

    def to_dict(self) -> dict:
        return {
            "skipped": self.skipped,
            "windows_processed": self.windows_processed,
            "windows_closed": self.windows_closed,
            "windows_failed": self.windows_failed,
            "absences_inserted": self.absences_inserted,
            "duplicates_skipped": self.duplicates_skipped,
            "insert_failures": self.insert_failures,
            "results": [r.to_dict() for r in self.results],
        }


def _chunks(items: Sequence, size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


class ReconciliationSweeper:
    """One tick of the reconciliation engine.

    For every active window past its expiry: roster, already recorded,
    insert absences, close. Windows are handled independently; a failure in
    one leaves it active for the next tick and never stops the others.
    """

    def __init__(
        self,
        windows: WindowManager,
        subjects: SubjectRepository,
        attendance: AttendanceRepository,
        *,
        clock: Optional[Clock] = None,
        batch_size: int = DEFAULT_ABSENCE_BATCH_SIZE,
    ):
        if int(batch_size) <= 0:
            raise ValueError("batch_size must be positive")
        self._windows = windows
        self._subjects = subjects
        self._attendance = attendance
        self._clock = clock or SystemClock()
        self._batch_size = int(batch_size)
        self._lock = threading.Lock()

    def run_once(self, now: Optional[datetime] = None) -> SweepSummary:
        if not self._lock.acquire(blocking=False):
            logger.info("Sweep already in progress; skipping tick")
            return SweepSummary(skipped=True)
        try:
            return self._run(to_utc(now or self._clock.now()))
        finally:
            self._lock.release()

    def _run(self, now: datetime) -> SweepSummary:
        summary = SweepSummary(started_at=now)
        try:
            expired = self._windows.list_expired_active(now)
        except PersistenceError:
            logger.exception("Could not list expired windows")
            return summary

        for window in expired:
            summary.results.append(self._sweep_window(window, now))

        if summary.results:
            logger.info(
                "Sweep: %d processed, %d closed, %d failed, %d absences, %d duplicates, %d insert failures",
                summary.windows_processed,
                summary.windows_closed,
                summary.windows_failed,
                summary.absences_inserted,
                summary.duplicates_skipped,
                summary.insert_failures,
            )
        return summary

    def _sweep_window(self, window: Window, now: datetime) -> WindowSweepResult:
        result = WindowSweepResult(window_id=window.window_id, window_name=window.name)
        try:
            roster = eligible_roster(self._subjects.list_all())
            recorded = self._attendance.recorded_handles(window.window_id)
        except Exception as exc:
            logger.exception("Window %s: could not load roster", window.window_id)
            result.error = str(exc)
            return result

        result.roster_size = len(roster)
        absentees = sorted((s for s in roster if s.handle not in recorded), key=lambda s: s.handle)
        result.absentees = len(absentees)

        records = [
            NewAttendanceRecord(
                subject_handle=s.handle,
                window_id=window.window_id,
                status=AttendanceStatus.ABSENT,
                recorded_at=now,
                subject_name=s.full_name,
                window_name=window.name,
            )
            for s in absentees
        ]
        for batch in _chunks(records, self._batch_size):
            self._insert_batch(window, batch, result)

        if records and result.inserted == 0 and result.already_recorded == 0:
            result.error = "every absence insert failed"
            logger.error("Window %s: %s; leaving it active", window.window_id, result.error)
            return result

        try:
            self._windows.close(window.window_id)
        except Exception as exc:
            logger.exception("Window %s: could not close", window.window_id)
            result.error = str(exc)
            return result

        result.closed = True
        logger.info(
            "Window %s (%s) closed: %d absent, %d already recorded, %d failed",
            window.window_id, window.name, result.inserted, result.already_recorded, result.failures,
        )
        return result

    def _insert_batch(self, window: Window, batch: Sequence[NewAttendanceRecord], result: WindowSweepResult) -> None:
        try:
            result.inserted += self._attendance.bulk_create(batch)
            return
        except Exception as exc:
            logger.warning(
                "Window %s: batch of %d failed (%s); retrying one by one",
                window.window_id, len(batch), exc,
            )

        for record in batch:
            try:
                self._attendance.create(record)
                result.inserted += 1
            except DuplicateRecordError:
                # A late check-in landed between the roster read and the insert.
                result.already_recorded += 1
            except Exception:
                logger.exception("Window %s: could not record absence for %s", window.window_id, record.subject_handle)
                result.failures += 1
