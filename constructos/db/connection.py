"""Async engine and session handling for the estimating database."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from constructos.config import get_config
from constructos.db.models import Base

_engine: AsyncEngine | None = None
_sessions: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Create the engine on first use from ``get_config().db``."""
    global _engine, _sessions

    if _engine is None:
        db_config = get_config().db
        engine_kwargs = {"echo": db_config.echo}

        # SQLite has no pool sizing
        if not db_config.url.lower().startswith("sqlite"):
            engine_kwargs.update(
                pool_size=db_config.pool_size,
                max_overflow=db_config.pool_max_overflow,
                pool_timeout=db_config.pool_timeout,
                pool_pre_ping=True,
            )

        _engine = create_async_engine(db_config.url, **engine_kwargs)
        _sessions = async_sessionmaker(_engine, expire_on_commit=False)

    return _engine


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Unit of work: commits on clean exit, rolls back and re-raises otherwise.

    Usage:
        async with get_session() as session:
            await WorkflowGuard(session, tenant_id, permissions).transition_estimate(...)
    """
    get_engine()
    async with _sessions() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(drop: bool = False) -> None:
    """Create all tables (development and tests; migrations live elsewhere)."""
    async with get_engine().begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    global _engine, _sessions

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _sessions = None
