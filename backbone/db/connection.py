"""Async engine and session handling.

One engine per process, created lazily from ``DATABASE_URL``. PostgreSQL runs
through asyncpg with a bounded pool; SQLite (aiosqlite) is used for tests and
local work and takes no pool settings.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from backbone.config import DBConfig, get_config
from backbone.db.models import Base

_engine: AsyncEngine | None = None
_session_factory: sessionmaker | None = None


def _engine_options(db: DBConfig) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": db.echo}
    if db.url.startswith("sqlite"):
        return options

    options.update(
        pool_size=db.pool_size,
        max_overflow=db.pool_max_overflow,
        pool_timeout=db.pool_timeout,
        pool_pre_ping=True,
        pool_recycle=3600,
    )
    return options


def get_engine() -> AsyncEngine:
    """Return the process-wide engine, creating it on first use.

    Raises:
        KeyError: If DATABASE_URL is not configured
    """
    global _engine

    if _engine is None:
        db = get_config().db
        _engine = create_async_engine(db.url, **_engine_options(db))

    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory

    if _session_factory is None:
        # Objects stay usable after commit; async sessions cannot lazy-load
        _session_factory = sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)

    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Unit of work: commit on clean exit, roll back on error.

    Usage:
        async with get_session() as session:
            script = await session.get(ScriptModel, script_id)

    Services that own their transaction (revision processing, the resolver)
    commit inside the block; the final commit is then a no-op.
    """
    session = get_session_factory()()

    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session."""
    async with get_session() as session:
        yield session


async def init_db(drop: bool = False) -> None:
    """Create every table (optionally dropping them first)."""
    async with get_engine().begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose the engine; the next get_engine() call builds a fresh one."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
