from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..common.datetime_utils import from_db, to_db
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from ..verification.geofence import Coordinate
from .model import Window
from .repository import WindowRepository

_COLUMNS = """
    window_id, code, name, owner_handle, created_at, expires_at, is_active,
    origin_lat, origin_lng, radius_meters, location_name, late_after_minutes
"""


def _to_window(row: Dict[str, Any]) -> Window:
    origin = None
    if row.get("origin_lat") is not None and row.get("origin_lng") is not None:
        origin = Coordinate(latitude=float(row["origin_lat"]), longitude=float(row["origin_lng"]))
    radius = row.get("radius_meters")
    late_after = row.get("late_after_minutes")
    return Window(
        window_id=int(row["window_id"]),
        code=row["code"],
        name=row["name"],
        owner_handle=row["owner_handle"],
        created_at=from_db(row["created_at"]),
        expires_at=from_db(row["expires_at"]),
        is_active=bool(row["is_active"]),
        origin=origin,
        radius_m=float(radius) if radius is not None else None,
        location_name=row.get("location_name"),
        late_after_minutes=int(late_after) if late_after is not None else None,
    )


class MySQLWindowRepository(WindowRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, window_id: int) -> Optional[Window]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM windows WHERE window_id=%s", (int(window_id),))
            row = fetchone(cur)
            return _to_window(row) if row else None

    def get_by_code(self, code: str) -> Optional[Window]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM windows WHERE code=%s", (code,))
            row = fetchone(cur)
            return _to_window(row) if row else None

    def get_latest_active(self, owner_handle: Optional[str] = None) -> Optional[Window]:
        clauses = ["is_active=1"]
        params: list[object] = []
        if owner_handle is not None:
            clauses.append("owner_handle=%s")
            params.append(owner_handle)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM windows
                WHERE {" AND ".join(clauses)}
                ORDER BY created_at DESC, window_id DESC
                LIMIT 1
                """,
                tuple(params),
            )
            row = fetchone(cur)
            return _to_window(row) if row else None

    def list_recent(self, *, limit: int, owner_handle: Optional[str] = None) -> Sequence[Window]:
        where = "WHERE owner_handle=%s" if owner_handle is not None else ""
        params: tuple = (owner_handle, int(limit)) if owner_handle is not None else (int(limit),)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM windows
                {where}
                ORDER BY created_at DESC, window_id DESC
                LIMIT %s
                """,
                params,
            )
            return [_to_window(r) for r in fetchall(cur)]

    def list_expired_active(self, now: datetime) -> Sequence[Window]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM windows
                WHERE is_active=1 AND expires_at <= %s
                ORDER BY expires_at ASC, window_id ASC
                """,
                (to_db(now),),
            )
            return [_to_window(r) for r in fetchall(cur)]

    def open_for_owner(
        self,
        *,
        owner_handle: str,
        code: str,
        name: str,
        created_at: datetime,
        expires_at: datetime,
        origin: Optional[Coordinate],
        radius_m: Optional[float],
        location_name: Optional[str],
        late_after_minutes: Optional[int],
    ) -> int:
        # One transaction: the unique key on active_owner rejects a second
        # active row for the owner if another open races this one.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE windows SET is_active=0 WHERE owner_handle=%s AND is_active=1",
                (owner_handle,),
            )
            cur.execute(
                """
                INSERT INTO windows(
                    code, name, owner_handle, created_at, expires_at, is_active,
                    origin_lat, origin_lng, radius_meters, location_name, late_after_minutes
                )
                VALUES(%s,%s,%s,%s,%s,1,%s,%s,%s,%s,%s)
                """,
                (
                    code,
                    name,
                    owner_handle,
                    to_db(created_at),
                    to_db(expires_at),
                    origin.latitude if origin else None,
                    origin.longitude if origin else None,
                    radius_m,
                    location_name,
                    late_after_minutes,
                ),
            )
            return int(cur.lastrowid)

    def deactivate(self, window_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE windows SET is_active=0 WHERE window_id=%s AND is_active=1",
                (int(window_id),),
            )
            return cur.rowcount > 0
