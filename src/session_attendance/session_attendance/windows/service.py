from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence

from ..common.clock import Clock, SystemClock
from ..common.datetime_utils import end_of_day_utc, to_utc
from ..core.constants import (
    DEFAULT_RADIUS_METERS,
    DEFAULT_TIMEZONE,
    DEFAULT_WINDOW_HOURS,
    DEFAULT_WINDOW_LIST_LIMIT,
    MAX_WINDOW_MINUTES,
)
from ..core.exceptions import DuplicateRecordError, NoActiveWindowError, NotFoundError, PersistenceError, ValidationError
from .codes import generate_code, normalize_code
from .model import Window, WindowConfig
from .repository import WindowRepository

logger = logging.getLogger(__name__)

_OPEN_ATTEMPTS = 3


class WindowManager:
    """Use case: open, look up and close attendance windows.

    States are ``active`` and ``inactive``; inactive is terminal.
    """

    def __init__(
        self,
        windows: WindowRepository,
        *,
        clock: Optional[Clock] = None,
        timezone: str = DEFAULT_TIMEZONE,
        default_window_hours: int = DEFAULT_WINDOW_HOURS,
        default_radius_m: float = DEFAULT_RADIUS_METERS,
        code_factory: Callable[[], str] = generate_code,
    ):
        self._windows = windows
        self._clock = clock or SystemClock()
        self._timezone = timezone
        self._default_window = timedelta(hours=int(default_window_hours))
        self._default_radius_m = float(default_radius_m)
        self._code_factory = code_factory

    def _resolve_expiry(self, config: WindowConfig, now: datetime) -> datetime:
        try:
            if config.expires_at is not None:
                expires_at = to_utc(config.expires_at, local_tz=self._timezone)
            elif config.expires_on is not None:
                expires_at = end_of_day_utc(config.expires_on, local_tz=self._timezone)
            elif config.duration_minutes is not None:
                expires_at = now + timedelta(minutes=int(config.duration_minutes))
            else:
                expires_at = now + self._default_window
        except OverflowError:
            raise ValidationError("Expiry is out of range")

        if expires_at <= now:
            raise ValidationError("Expiry must be in the future")
        return expires_at

    def open(self, owner_handle: str, config: WindowConfig, *, now: Optional[datetime] = None) -> Window:
        """Open a new window for ``owner_handle``, closing the owner's previous one."""

        if not owner_handle or not owner_handle.strip():
            raise ValidationError("Owner is required")
        if not config.name or not config.name.strip():
            raise ValidationError("Session name is required")
        if config.radius_m is not None and config.radius_m <= 0:
            raise ValidationError("Radius must be greater than zero")
        for minutes, label in ((config.duration_minutes, "Duration"), (config.late_after_minutes, "Late threshold")):
            if minutes is not None and not 0 < minutes <= MAX_WINDOW_MINUTES:
                raise ValidationError(f"{label} must be between 1 and {MAX_WINDOW_MINUTES} minutes")

        now = to_utc(now or self._clock.now())
        expires_at = self._resolve_expiry(config, now)

        radius_m = None
        if config.origin is not None:
            radius_m = config.radius_m if config.radius_m is not None else self._default_radius_m

        last_error: Optional[PersistenceError] = None
        for attempt in range(1, _OPEN_ATTEMPTS + 1):
            code = self._code_factory()
            try:
                window_id = self._windows.open_for_owner(
                    owner_handle=owner_handle,
                    code=code,
                    name=config.name.strip(),
                    created_at=now,
                    expires_at=expires_at,
                    origin=config.origin,
                    radius_m=radius_m,
                    location_name=config.location_name,
                    late_after_minutes=config.late_after_minutes,
                )
                break
            except DuplicateRecordError as exc:
                # Code collision, or a concurrent open by the same owner.
                logger.warning("Open window for %s collided (attempt %d): %s", owner_handle, attempt, exc)
                last_error = exc
        else:
            raise PersistenceError(f"Could not open window for {owner_handle}") from last_error

        window = self._windows.get_by_id(window_id)
        if window is None:
            raise PersistenceError(f"Window {window_id} vanished after insert")

        logger.info(
            "Opened window %s (%s) for %s, expires %s",
            window.window_id, window.name, owner_handle, window.expires_at.isoformat(),
        )
        return window

    def get(self, window_id: int) -> Window:
        window = self._windows.get_by_id(int(window_id))
        if window is None:
            raise NotFoundError(f"Session {window_id} not found")
        return window

    def find_by_code(self, code: str) -> Window:
        normalized = normalize_code(code)
        if not normalized:
            raise ValidationError("Attendance code is required")
        window = self._windows.get_by_code(normalized)
        if window is None:
            raise NotFoundError("Invalid attendance code")
        return window

    def get_active(self, owner_handle: Optional[str] = None) -> Optional[Window]:
        return self._windows.get_latest_active(owner_handle)

    def list_recent(self, *, limit: int = DEFAULT_WINDOW_LIST_LIMIT, owner_handle: Optional[str] = None) -> Sequence[Window]:
        return self._windows.list_recent(limit=int(limit), owner_handle=owner_handle)

    def list_expired_active(self, now: datetime) -> Sequence[Window]:
        return self._windows.list_expired_active(to_utc(now))

    def close(self, window_id: int) -> Window:
        """Deactivate a window. Closing an inactive window is a no-op."""

        window = self.get(window_id)
        if not window.is_active:
            return window

        if self._windows.deactivate(window.window_id):
            logger.info("Closed window %s (%s)", window.window_id, window.name)
        return replace(window, is_active=False)

    def require_open(self, window: Window, *, now: Optional[datetime] = None) -> Window:
        now = to_utc(now or self._clock.now())
        if not window.is_active:
            raise NoActiveWindowError("Session is no longer active")
        if window.is_expired(now):
            raise NoActiveWindowError("Session has expired")
        return window
