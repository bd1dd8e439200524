"""
SCHEDULER BOOTSTRAP

Initializes and manages the APScheduler instance.
Scheduler is orchestration-only and contains no business logic.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from pooldose.config import settings
from pooldose.scheduler.jobs import run_dosing_cycle_job

_logger = logging.getLogger(__name__)

DOSING_JOB_ID = "dosing_cycle_job"


class DosingScheduler:
    """
    Periodic dosing evaluation

    The job never overlaps itself: a run still in progress makes the
    next trigger skip, and missed runs collapse into one.
    """

    def __init__(self, interval_seconds: int | None = None):
        self.interval_seconds = interval_seconds or settings.EVALUATION_INTERVAL_SECONDS
        self.scheduler = AsyncIOScheduler(timezone=settings.TIMEZONE)

    def start(self) -> None:
        """
        Register jobs and start the scheduler (inside a running event loop).
        """
        self.scheduler.add_job(
            run_dosing_cycle_job,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=DOSING_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        _logger.info(f"Scheduler started, dosing cycle every {self.interval_seconds}s")

    def stop(self) -> None:
        """
        Shutdown the scheduler safely.
        """
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            _logger.info("Scheduler shut down")

    @property
    def running(self) -> bool:
        return self.scheduler.running
