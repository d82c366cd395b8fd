"""
Sweep Scheduler — runs in a separate process (roundwatch-scheduler).

NOT inside the API process. Prevents the nightly sweep from blocking API
requests.

Jobs:
1. Reminder sweep (daily, 00:00 UTC by default) — lifecycle + reminders
"""

from typing import Awaitable, Callable

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from roundwatch.config import settings

logger = structlog.get_logger(__name__)

SWEEP_JOB_ID = "reminder_sweep"


class SweepScheduler:
    """Time trigger for the sweep. The job itself never raises."""

    def __init__(
        self,
        sweep: Callable[[], Awaitable[None]],
        hour: int | None = None,
        minute: int | None = None,
        timezone: str | None = None,
    ):
        self.sweep = sweep
        self.hour = settings.sweep_hour if hour is None else hour
        self.minute = settings.sweep_minute if minute is None else minute
        self.timezone = timezone or settings.sweep_timezone
        self.scheduler = AsyncIOScheduler(timezone=self.timezone)

    def register(self) -> None:
        self.scheduler.add_job(
            self.sweep,
            CronTrigger(hour=self.hour, minute=self.minute, timezone=self.timezone),
            id=SWEEP_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

    def start(self) -> None:
        """Register and start the scheduled job."""
        self.register()
        self.scheduler.start()
        logger.info(
            "sweep_scheduler_started",
            hour=self.hour,
            minute=self.minute,
            timezone=self.timezone,
        )

    def stop(self) -> None:
        """Gracefully stop the scheduler."""
        self.scheduler.shutdown(wait=True)
        logger.info("sweep_scheduler_stopped")
