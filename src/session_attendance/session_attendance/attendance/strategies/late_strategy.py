from __future__ import annotations

from datetime import datetime

from ...core.enums import AttendanceStatus
from ...windows.model import Window
from .base import AttendanceStrategy, StatusDecision


class LateStrategy(AttendanceStrategy):
    """Check-in after the window's late threshold."""

    def decide_checkin(self, *, now: datetime, window: Window) -> StatusDecision:
        minutes = int((now - window.created_at).total_seconds() // 60)
        return StatusDecision(status=AttendanceStatus.LATE, note=f"Checked in {minutes} min after opening")
