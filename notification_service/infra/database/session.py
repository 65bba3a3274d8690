"""Database session management (SQLAlchemy async engine)."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from notification_service.core.settings import get_db_settings
from notification_service.utils.retry import retry

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from notification_service.core.settings import DatabaseSettings

logger = logging.getLogger(__name__)


def build_engine(settings: DatabaseSettings) -> AsyncEngine:
    """Create an async engine from database settings.

    Pool sizing only applies to server databases; SQLite uses its own pool.
    """
    kwargs: dict[str, Any] = {
        "echo": settings.echo,
        "pool_pre_ping": settings.pool_pre_ping,
    }
    if not settings.is_sqlite:
        kwargs["pool_size"] = settings.pool_size
        kwargs["max_overflow"] = settings.max_overflow
    return create_async_engine(settings.url, **kwargs)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by services, channel handlers and sweeps."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


db_settings = get_db_settings()
engine = build_engine(db_settings)
AsyncSessionLocal = build_session_factory(engine)


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Get async database session.

    Example:
        async with get_async_session() as session:
            page = await store.list(session, user_id)
    """
    async with AsyncSessionLocal() as session:
        yield session


async def get_db_session() -> AsyncGenerator[AsyncSession]:
    """FastAPI dependency yielding a session per request."""
    async with AsyncSessionLocal() as session:
        yield session


@retry(max_attempts=5, initial_delay=1.0, max_delay=15.0, exponential_base=2.0)
async def init_database() -> None:
    """Verify connectivity with retry, creating tables for SQLite dev databases.

    PostgreSQL schemas are managed by Alembic; SQLite is typically a local
    or test database so tables are created directly.
    """
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))

    if db_settings.is_sqlite:
        from notification_service.core.database import Base
        from notification_service.core.models import load_models

        load_models()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    logger.info(
        "Database connection established",
        extra={"dialect": engine.dialect.name},
    )


async def close_database() -> None:
    """Dispose the engine pool on shutdown."""
    logger.info("Closing database connection")
    await engine.dispose()


__all__ = [
    "AsyncSessionLocal",
    "build_engine",
    "build_session_factory",
    "close_database",
    "engine",
    "get_async_session",
    "get_db_session",
    "init_database",
]
