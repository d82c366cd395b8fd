"""
Scheduler Entry Point — runs in a separate container.

Usage:
    python -m roundwatch.scheduler_main

This does NOT run a web server. It runs the APScheduler loop for the
daily round sweep. Deploy it with ENABLE_SCHEDULER=false on the API
processes, otherwise the sweep runs twice. Reminders are published on
this process's own channel registry; clients connected to the API see
them on their next fetch.
"""

import asyncio
import signal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from roundwatch.config import settings
from roundwatch.db.engine import create_engine_for, session_factory_for
from roundwatch.logging_setup import configure_logging
from roundwatch.reminders.service import ReminderService
from roundwatch.services.scheduler import SweepScheduler

logger = structlog.get_logger(__name__)


def build_service(session_factory: async_sessionmaker[AsyncSession], **overrides) -> ReminderService:
    """Reminder service for the scheduler process, with its own channel registry."""
    return ReminderService.build(session_factory, **overrides)


async def main():
    """Initialize and run the scheduler."""
    configure_logging()
    logger.info("scheduler_starting", version=settings.app_version)

    # Database
    engine = create_engine_for(settings.async_database_url, echo=settings.debug)
    session_factory = session_factory_for(engine)

    service = build_service(session_factory)

    # Start periodic scheduler
    scheduler = SweepScheduler(service.run_scheduled_sweep)
    scheduler.start()

    # Graceful shutdown handling
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _handle_signal(signum):
        logger.info("shutdown_signal_received", signal=signum)
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, _handle_signal, signum)

    logger.info("scheduler_running", msg="Waiting for jobs... Ctrl+C to stop.")

    # Block until shutdown signal
    await stop_event.wait()

    # Cleanup
    scheduler.stop()
    await engine.dispose()
    logger.info("scheduler_shutdown_complete")


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
