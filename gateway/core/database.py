"""Async engine, session factory and the session dependencies."""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from gateway.core.config import get_settings
from gateway.core.structured_logging import log_json

logger = logging.getLogger(__name__)

_MAX_LOGGED_STATEMENT = 2000


def _async_url(url: str) -> str:
    """Plain ``postgresql://`` URLs are served by asyncpg."""
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://") :]
    return url


def _log_slow_queries(sync_engine: Engine, threshold_ms: float) -> None:
    """Emit a ``slow_query`` warning for statements slower than ``threshold_ms``."""

    @event.listens_for(sync_engine, "before_cursor_execute")
    def _start(conn, cursor, statement, parameters, context, executemany) -> None:
        context._gateway_started = time.perf_counter()

    @event.listens_for(sync_engine, "after_cursor_execute")
    def _finish(conn, cursor, statement, parameters, context, executemany) -> None:
        started = getattr(context, "_gateway_started", None)
        if started is None:
            return
        elapsed_ms = (time.perf_counter() - started) * 1000
        if elapsed_ms >= threshold_ms:
            log_json(
                logger,
                logging.WARNING,
                "slow_query",
                duration_ms=round(elapsed_ms, 2),
                statement=str(statement)[:_MAX_LOGGED_STATEMENT],
            )


def build_engine() -> AsyncEngine:
    settings = get_settings()
    # Test databases are created and dropped per test; pooled connections would outlive them.
    pool = NullPool if "test" in settings.database_url else None
    built = create_async_engine(_async_url(settings.database_url), poolclass=pool)
    if settings.slow_query_ms > 0:
        _log_slow_queries(built.sync_engine, settings.slow_query_ms)
    return built


engine = build_engine()
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Request-scoped session: committed when the handler returns, rolled back when it raises."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for writes that must commit independently of the request.

    Usage records and webhook delivery outcomes go through their own sessions
    so a failed or cancelled request cannot roll them back.
    """
    return AsyncSessionLocal
