"""Pytest configuration and fixtures for Backbone tests.

Provides common fixtures for testing.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from backbone.config import reset_config
from backbone.db.models import Base, ElementModel, ScriptModel
from backbone.matching.models import ExistingElement
from backbone.models import DetectedElement, ElementType

BASE_TIME = datetime(2025, 1, 1, 9, 0, 0)


@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Point configuration at an in-memory database with default thresholds."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.delenv("FUZZY_THRESHOLD", raising=False)
    monkeypatch.delenv("MAX_ELEMENTS_PER_REVISION", raising=False)
    reset_config()
    yield
    reset_config()


@pytest_asyncio.fixture()
async def db_session() -> AsyncSession:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


def detected(name: str, type_: str = "CHARACTER", pages=None, highlight=None) -> DetectedElement:
    """Build a detected element."""
    return DetectedElement(
        name=name,
        type=ElementType(type_),
        pages=list(pages or []),
        highlight_text=highlight,
    )


def existing(name: str, type_: str = "CHARACTER", minutes: int = 0) -> ExistingElement:
    """Build a pool element created ``minutes`` after BASE_TIME."""
    return ExistingElement(
        id=uuid4(),
        name=name,
        type=type_,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


async def add_script(
    session: AsyncSession,
    status: str = "READY",
    parent: ScriptModel | None = None,
    title: str = "The Long Night",
) -> ScriptModel:
    """Persist a script, chained to ``parent`` when given."""
    script_id = uuid4()
    script = ScriptModel(
        id=script_id,
        production_id="prod-1",
        title=title,
        version=parent.version + 1 if parent else 1,
        parent_script_id=parent.id if parent else None,
        lineage_id=parent.lineage_id if parent else script_id,
        status=status,
    )
    session.add(script)
    await session.flush()
    return script


async def add_element(
    session: AsyncSession,
    script: ScriptModel,
    name: str,
    type_: str = "CHARACTER",
    pages=None,
    minutes: int = 0,
    status: str = "ACTIVE",
) -> ElementModel:
    """Persist an element owned by ``script``'s lineage."""
    element = ElementModel(
        id=uuid4(),
        lineage_id=script.lineage_id,
        script_id=script.id,
        name=name,
        type=type_,
        status=status,
        source="AUTO",
        page_numbers=list(pages or []),
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )
    session.add(element)
    await session.flush()
    return element
