from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..verification.geofence import Coordinate
from .model import Window


class WindowRepository(Protocol):
    def get_by_id(self, window_id: int) -> Optional[Window]:
        raise NotImplementedError

    def get_by_code(self, code: str) -> Optional[Window]:
        raise NotImplementedError

    def get_latest_active(self, owner_handle: Optional[str] = None) -> Optional[Window]:
        """Most recently created active window, optionally scoped to an owner."""

        raise NotImplementedError

    def list_recent(self, *, limit: int, owner_handle: Optional[str] = None) -> Sequence[Window]:
        raise NotImplementedError

    def list_expired_active(self, now: datetime) -> Sequence[Window]:
        """Windows still flagged active whose expiry is at or before ``now``."""

        raise NotImplementedError

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
        """Deactivate the owner's active window and insert a new active one atomically.

        Returns window_id.
        """

        raise NotImplementedError

    def deactivate(self, window_id: int) -> bool:
        """Flip active -> inactive. Returns False when nothing changed."""

        raise NotImplementedError
