"""Fixed-cadence scheduling for the proactive sweep.

Wraps an APScheduler scheduler with a single interval job. The job is
registered with ``max_instances=1`` and ``coalesce=True`` so a tick that fires
while the previous pass is still running is dropped instead of running
concurrently against the same candidate set. Failures to enumerate candidates
are logged and left for the next tick; no backoff is applied here.
"""

from __future__ import annotations

import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .sweep import ProactiveSweep, SweepSelectionError

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "proactive_sweep"


class SweepScheduler:
    """Runs :meth:`ProactiveSweep.run` every ``interval_seconds``.

    Args:
        sweep: Sweep instance to drive.
        interval_seconds: Cadence of the job; one minute by default.
        scheduler: Optional APScheduler instance; defaults to a
            :class:`BackgroundScheduler`. The CLI passes a blocking one.
    """

    def __init__(
        self,
        sweep: ProactiveSweep,
        *,
        interval_seconds: int = 60,
        scheduler: Optional[BaseScheduler] = None,
    ) -> None:
        self._sweep = sweep
        self._interval_seconds = interval_seconds
        self._scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self._started = False

    @property
    def scheduler(self) -> BaseScheduler:
        return self._scheduler

    @property
    def started(self) -> bool:
        return self._started

    def register(self) -> None:
        # replace_existing is not applied to jobs pending before start()
        if self._scheduler.get_job(SWEEP_JOB_ID) is not None:
            return
        self._scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self._interval_seconds),
            id=SWEEP_JOB_ID,
            name="Proactive conversation sweep",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self._interval_seconds,
            replace_existing=True,
        )

    def start(self) -> bool:
        """Register the job and start the scheduler."""

        if self._started:
            return True
        self.register()
        self._started = True
        logger.info(
            "Proactive sweep scheduler started (every %ss)", self._interval_seconds
        )
        self._scheduler.start()
        return True

    def shutdown(self, wait: bool = False) -> None:
        if not self._started:
            return
        self._scheduler.shutdown(wait=wait)
        self._started = False
        logger.info("Proactive sweep scheduler stopped")

    def tick(self) -> None:
        """Job body: one sweep pass with failures reported to the log."""

        try:
            summary = self._sweep.run()
        except SweepSelectionError:
            logger.error("Proactive sweep pass failed; retrying on next tick")
            return
        if summary.failed:
            logger.warning(
                "Proactive sweep pass had %d persistence failures", summary.failed
            )


__all__ = ["SWEEP_JOB_ID", "SweepScheduler"]
