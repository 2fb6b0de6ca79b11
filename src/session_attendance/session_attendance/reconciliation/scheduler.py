from __future__ import annotations

import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..core.constants import DEFAULT_SWEEP_INTERVAL_SECONDS
from .sweeper import ReconciliationSweeper, SweepSummary

logger = logging.getLogger(__name__)

JOB_ID = "reconciliation_sweep"


class SweeperTask:
    """Runs the sweeper on a fixed interval in a background thread.

    Nothing starts until :meth:`start` is called.
    """

    def __init__(
        self,
        sweeper: ReconciliationSweeper,
        *,
        interval_seconds: int = DEFAULT_SWEEP_INTERVAL_SECONDS,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        if int(interval_seconds) <= 0:
            raise ValueError("interval_seconds must be positive")
        self._sweeper = sweeper
        self._interval = int(interval_seconds)
        self._scheduler = scheduler or BackgroundScheduler(timezone="UTC")

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    def tick(self) -> SweepSummary:
        try:
            return self._sweeper.run_once()
        except Exception:
            # Keep the job scheduled; the next tick retries.
            logger.exception("Reconciliation tick failed")
            return SweepSummary()

    def start(self) -> None:
        if self.running:
            return
        self._scheduler.add_job(
            func=self.tick,
            trigger=IntervalTrigger(seconds=self._interval),
            id=JOB_ID,
            name="Reconcile expired attendance windows",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info("Reconciliation sweeper started (every %d s)", self._interval)

    def stop(self, *, wait: bool = True) -> None:
        if not self.running:
            return
        self._scheduler.shutdown(wait=wait)
        logger.info("Reconciliation sweeper stopped")
