from __future__ import annotations

from typing import Optional, Protocol, Sequence, Set

from .model import AttendanceRecord, NewAttendanceRecord


class AttendanceRepository(Protocol):
    def get_for_subject_and_window(self, subject_handle: str, window_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def create(self, record: NewAttendanceRecord) -> int:
        """Insert one record. Raises DuplicateRecordError if the pair exists."""

        raise NotImplementedError

    def bulk_create(self, records: Sequence[NewAttendanceRecord]) -> int:
        """Insert all records in one transaction, or none of them.

        Returns the number inserted.
        """

        raise NotImplementedError

    def recorded_handles(self, window_id: int) -> Set[str]:
        raise NotImplementedError

    def list_for_window(self, window_id: int) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_for_subject(self, subject_handle: str, *, limit: int) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_recent(self, *, limit: int) -> Sequence[AttendanceRecord]:
        """Newest records across every window."""

        raise NotImplementedError
