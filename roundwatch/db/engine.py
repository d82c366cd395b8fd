"""
Database engine, session factory, and declarative base.

Async SQLAlchemy 2.0: asyncpg in production, aiosqlite in dev/test.
The API process uses the lazy module-level pair (get_engine /
get_session_factory); the scheduler process builds its own with
create_engine_for / session_factory_for.
"""

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from roundwatch.config import settings

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    pass


def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    """Async engine for a URL. SQLite gets no pool sizing."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=settings.db_pool_recycle,
    )


def session_factory_for(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Rows handed to the domain outlive their session
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


# Lazy-initialized singletons for the API process
_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_engine_for(settings.async_database_url, echo=settings.debug)
        logger.info("database_engine_created")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = session_factory_for(get_engine())
    return _session_factory


async def create_tables(engine: AsyncEngine) -> None:
    import roundwatch.db.models  # noqa: F401 (populates Base.metadata)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db() -> None:
    """Create tables in development; production schemas are managed outside the app."""
    if settings.environment.lower() == "development":
        await create_tables(get_engine())
        logger.info("tables_created", mode="development")
    else:
        logger.info("skipping_auto_create", environment=settings.environment)


async def close_db() -> None:
    """Dispose the API engine (call at shutdown)."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("database_closed")
