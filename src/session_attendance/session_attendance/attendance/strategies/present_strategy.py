from __future__ import annotations

from datetime import datetime

from ...core.enums import AttendanceStatus
from ...windows.model import Window
from .base import AttendanceStrategy, StatusDecision


class PresentStrategy(AttendanceStrategy):
    """Check-in inside the on-time part of the window."""

    def decide_checkin(self, *, now: datetime, window: Window) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.PRESENT)
