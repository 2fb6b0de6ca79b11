from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, decode_vector, encode_vector, fetchall, fetchone
from .model import AcademicProfile, Subject
from .repository import SubjectRepository

_COLUMNS = """
    handle, full_name, password_hash, role, is_active, face_embedding,
    email, enroll_no, registered_no, department, program, section, year
"""


def _to_subject(row: Dict[str, Any]) -> Subject:
    return Subject(
        handle=row["handle"],
        full_name=row["full_name"],
        role=Role(row["role"]),
        is_active=bool(row.get("is_active", True)),
        password_hash=row.get("password_hash") or "",
        face_embedding=decode_vector(row.get("face_embedding")),
        profile=AcademicProfile(
            email=row.get("email"),
            enroll_no=row.get("enroll_no"),
            registered_no=row.get("registered_no"),
            department=row.get("department"),
            program=row.get("program"),
            section=row.get("section"),
            year=row.get("year"),
        ),
    )


class MySQLSubjectRepository(SubjectRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_handle(self, handle: str) -> Optional[Subject]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM subjects WHERE handle=%s", (handle,))
            row = fetchone(cur)
            return _to_subject(row) if row else None

    def list_all(self) -> Sequence[Subject]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM subjects ORDER BY handle")
            return [_to_subject(r) for r in fetchall(cur)]

    def set_face_embedding(self, handle: str, embedding: Sequence[float]) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE subjects SET face_embedding=%s WHERE handle=%s",
                (encode_vector(embedding), handle),
            )
            return cur.rowcount > 0
