"""
Roundwatch — FastAPI Application.

Run: uvicorn roundwatch.main:app --host 0.0.0.0 --port 8001 --reload

Routes:
  - GET  /api/v1/reminders/team/{team_id}/round/{round_id}
  - GET  /api/v1/reminders/round/{round_id}/at-risk
  - POST /api/v1/reminders/team/{team_id}/round/{round_id}/send
  - POST /api/v1/reminders/sweep
  - GET  /api/v1/events/stream?token=...
  - GET  /health
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from roundwatch.api.routers.events import router as events_router
from roundwatch.api.routers.reminders import router as reminders_router
from roundwatch.auth.identity import IdentityVerifier
from roundwatch.config import settings
from roundwatch.db.engine import close_db, get_session_factory, init_db
from roundwatch.db.repositories.reminders import ReminderRepository
from roundwatch.logging_setup import configure_logging
from roundwatch.middleware.error_handler import ErrorHandlerMiddleware
from roundwatch.reminders.service import ReminderService
from roundwatch.services.channels import ChannelRegistry
from roundwatch.services.llm_gateway import LLMGateway
from roundwatch.services.scheduler import SweepScheduler

logger = structlog.get_logger(__name__)


def build_components(
    app: FastAPI,
    session_factory: async_sessionmaker[AsyncSession],
    oracle: Optional[LLMGateway] = None,
) -> None:
    """Create the process-wide registry and service and hang them on app.state."""
    registry = ChannelRegistry(
        IdentityVerifier(ReminderRepository(session_factory)),
        queue_size=settings.event_queue_size,
        keepalive_seconds=settings.event_keepalive_seconds,
    )
    app.state.channel_registry = registry
    app.state.reminder_service = ReminderService.build(
        session_factory, registry=registry, oracle=oracle
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown."""
    configure_logging()
    logger.info("roundwatch_starting", version=settings.app_version)
    await init_db()

    if not hasattr(app.state, "reminder_service"):
        build_components(app, get_session_factory())

    scheduler = None
    if settings.enable_scheduler:
        scheduler = SweepScheduler(app.state.reminder_service.run_scheduled_sweep)
        scheduler.start()

    yield

    if scheduler is not None:
        scheduler.stop()
    await close_db()
    logger.info("roundwatch_shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Roundwatch",
        description=(
            "Round lifecycle and deadline-risk reminders for hackathons.\n\n"
            "## Authentication\n"
            "All endpoints except /health require `Authorization: Bearer <JWT>`; "
            "the event stream takes `?token=<JWT>`.\n"
        ),
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Outermost: domain errors and crashes become JSON
    app.add_middleware(ErrorHandlerMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(reminders_router)
    app.include_router(events_router)

    @app.get("/health", tags=["health"])
    async def health():
        """Liveness probe — does NOT check dependencies."""
        return {
            "status": "ok",
            "version": settings.app_version,
            "service": "roundwatch",
        }

    return app


app = create_app()
