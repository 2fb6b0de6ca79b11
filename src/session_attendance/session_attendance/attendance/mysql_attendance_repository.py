from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Set

from ..common.datetime_utils import from_db, to_db
from ..core.enums import AttendanceStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import AttendanceRecord, NewAttendanceRecord, VerificationMetadata
from .repository import AttendanceRepository

_COLUMNS = """
    attendance_id, subject_handle, window_id, status, recorded_at, attendance_date,
    subject_name, window_name, similarity_score, distance_meters, location_verified, face_verified
"""

_INSERT = """
    INSERT INTO attendance_records(
        subject_handle, window_id, status, recorded_at, attendance_date,
        subject_name, window_name, similarity_score, distance_meters, location_verified, face_verified
    )
    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
"""


def _optional_bool(value: Any) -> Optional[bool]:
    return None if value is None else bool(value)


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _to_record(r: Dict[str, Any]) -> AttendanceRecord:
    return AttendanceRecord(
        attendance_id=int(r["attendance_id"]),
        subject_handle=r["subject_handle"],
        window_id=int(r["window_id"]),
        status=AttendanceStatus(r["status"]),
        recorded_at=from_db(r["recorded_at"]),
        attendance_date=r["attendance_date"],
        subject_name=r.get("subject_name"),
        window_name=r.get("window_name"),
        metadata=VerificationMetadata(
            similarity_score=_optional_float(r.get("similarity_score")),
            distance_m=_optional_float(r.get("distance_meters")),
            location_verified=_optional_bool(r.get("location_verified")),
            face_verified=_optional_bool(r.get("face_verified")),
        ),
    )


def _params(record: NewAttendanceRecord) -> tuple:
    meta = record.metadata
    return (
        record.subject_handle,
        int(record.window_id),
        record.status.value,
        to_db(record.recorded_at),
        record.attendance_date,
        record.subject_name,
        record.window_name,
        meta.similarity_score,
        meta.distance_m,
        meta.location_verified,
        meta.face_verified,
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_for_subject_and_window(self, subject_handle: str, window_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE subject_handle=%s AND window_id=%s",
                (subject_handle, int(window_id)),
            )
            r = fetchone(cur)
            return _to_record(r) if r else None

    def create(self, record: NewAttendanceRecord) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_INSERT, _params(record))
            return int(cur.lastrowid)

    def bulk_create(self, records: Sequence[NewAttendanceRecord]) -> int:
        if not records:
            return 0
        # executemany folds INSERT ... VALUES into one multi-row statement;
        # db_cursor rolls the whole batch back on any error.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.executemany(_INSERT, [_params(r) for r in records])
            return len(records)

    def recorded_handles(self, window_id: int) -> Set[str]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT subject_handle FROM attendance_records WHERE window_id=%s",
                (int(window_id),),
            )
            return {r["subject_handle"] for r in fetchall(cur)}

    def list_for_window(self, window_id: int) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE window_id=%s
                ORDER BY subject_handle ASC
                """,
                (int(window_id),),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def list_for_subject(self, subject_handle: str, *, limit: int) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE subject_handle=%s
                ORDER BY recorded_at DESC
                LIMIT %s
                """,
                (subject_handle, int(limit)),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def list_recent(self, *, limit: int) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                ORDER BY recorded_at DESC, attendance_id DESC
                LIMIT %s
                """,
                (int(limit),),
            )
            return [_to_record(r) for r in fetchall(cur)]
