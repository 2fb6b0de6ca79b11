from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from ..windows.model import Window
from .strategies.base import AttendanceStrategy
from .strategies.late_strategy import LateStrategy
from .strategies.present_strategy import PresentStrategy


@dataclass
class AttendanceStrategyFactory:
    """Factory Pattern: choose appropriate strategy based on rules."""

    def for_checkin(self, *, now: datetime, window: Window) -> AttendanceStrategy:
        if not window.late_after_minutes:
            return PresentStrategy()

        try:
            late_from = window.created_at + timedelta(minutes=window.late_after_minutes)
        except OverflowError:
            # Threshold lies past the end of the calendar: never late.
            return PresentStrategy()
        if now <= late_from:
            return PresentStrategy()
        return LateStrategy()
