"""Tests for the reconciliation resolver."""

from __future__ import annotations

from dataclasses import dataclass
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from backbone.db.models import (
    ApprovalModel,
    ElementModel,
    OptionModel,
    RevisionMatchModel,
    ScriptModel,
)
from backbone.models import DecisionInput, RevisionDecision
from backbone.reconciliation.errors import (
    AlreadyResolved,
    ConflictingMapDecision,
    IncompleteDecisionSet,
    InvalidDecisionForStatus,
    PersistenceFailure,
    ScriptNotFound,
    ScriptNotReconciling,
    UnknownMatch,
)
from backbone.reconciliation.repository import count_unresolved, fetch_revision_matches
from backbone.reconciliation.service import resolve_revision_matches
from backbone.revisions.processor import process_revision
from conftest import add_element, add_script, detected


@dataclass
class Batch:
    parent: ScriptModel
    revision: ScriptModel
    john: ElementModel
    bob: ElementModel
    fuzzy: RevisionMatchModel
    missing: RevisionMatchModel


async def _add_options(session: AsyncSession, element: ElementModel, count: int) -> None:
    for i in range(count):
        option = OptionModel(id=uuid4(), element_id=element.id, description=f"look {i}")
        session.add(option)
        await session.flush()
        session.add(
            ApprovalModel(id=uuid4(), option_id=option.id, user_id="director", decision="APPROVED")
        )
    await session.flush()


async def _reload(session: AsyncSession, model, id_):
    stmt = select(model).where(model.id == id_).execution_options(populate_existing=True)
    return (await session.execute(stmt)).scalar_one()


async def _option_count(session: AsyncSession, element_id) -> int:
    stmt = select(func.count(OptionModel.id)).where(OptionModel.element_id == element_id)
    return (await session.execute(stmt)).scalar_one()


@pytest_asyncio.fixture()
async def batch(db_session: AsyncSession) -> Batch:
    """JOHN SMITH (3 options) is fuzzily re-detected; BOB (1 option) vanished."""
    parent = await add_script(db_session)
    john = await add_element(db_session, parent, "JOHN SMITH", pages=[1], minutes=0)
    bob = await add_element(db_session, parent, "BOB", pages=[2], minutes=1)
    await _add_options(db_session, john, 3)
    await _add_options(db_session, bob, 1)
    revision = await add_script(db_session, status="PROCESSING", parent=parent)
    await db_session.commit()

    await process_revision(db_session, revision.id, [detected("JOHN SMITHE", pages=[1, 4])])
    fuzzy, missing = await fetch_revision_matches(db_session, revision.id)

    return Batch(parent, revision, john, bob, fuzzy, missing)


def decision(match, value: str, department_id: str | None = None) -> DecisionInput:
    return DecisionInput(
        match_id=match.id, decision=RevisionDecision(value), department_id=department_id
    )


@pytest.mark.asyncio
async def test_map_and_archive_complete_reconciliation(db_session: AsyncSession, batch: Batch):
    summary = await resolve_revision_matches(
        db_session,
        batch.revision.id,
        [decision(batch.fuzzy, "map", "costume"), decision(batch.missing, "archive")],
        resolved_by="ana@example.com",
    )

    assert summary.resolved == 2
    assert summary.decisions == {"map": 1, "archive": 1}
    assert summary.archived_element_ids == [batch.bob.id]

    john = await _reload(db_session, ElementModel, batch.john.id)
    assert john.name == "JOHN SMITHE"
    assert john.page_numbers == [1, 4]
    assert john.script_id == batch.revision.id
    assert john.department_id == "costume"
    assert john.status == "ACTIVE"
    assert await _option_count(db_session, john.id) == 3

    bob = await _reload(db_session, ElementModel, batch.bob.id)
    assert bob.status == "ARCHIVED"
    assert await _option_count(db_session, bob.id) == 1

    revision = await _reload(db_session, ScriptModel, batch.revision.id)
    assert revision.status == "READY"
    assert await count_unresolved(db_session, batch.revision.id) == 0

    fuzzy = await _reload(db_session, RevisionMatchModel, batch.fuzzy.id)
    assert fuzzy.resolved is True
    assert fuzzy.user_decision == "map"
    assert fuzzy.department_id == "costume"
    assert fuzzy.resolved_by == "ana@example.com"
    assert fuzzy.resolved_at is not None


@pytest.mark.asyncio
async def test_create_new_and_keep(db_session: AsyncSession, batch: Batch):
    summary = await resolve_revision_matches(
        db_session,
        batch.revision.id,
        [decision(batch.fuzzy, "create_new", "art"), decision(batch.missing, "keep", "props")],
    )

    assert len(summary.created_element_ids) == 1
    created = await _reload(db_session, ElementModel, summary.created_element_ids[0])
    assert created.name == "JOHN SMITHE"
    assert created.source == "AUTO"
    assert created.department_id == "art"
    assert created.script_id == batch.revision.id
    assert created.lineage_id == batch.parent.lineage_id

    john = await _reload(db_session, ElementModel, batch.john.id)
    assert john.name == "JOHN SMITH"
    assert john.status == "ACTIVE"
    assert john.script_id == batch.parent.id

    bob = await _reload(db_session, ElementModel, batch.bob.id)
    assert bob.status == "ACTIVE"
    assert bob.script_id == batch.revision.id
    assert bob.department_id == "props"

    fuzzy = await _reload(db_session, RevisionMatchModel, batch.fuzzy.id)
    assert fuzzy.resolved_by == "system"


@pytest.mark.asyncio
async def test_partial_set_is_rejected(db_session: AsyncSession, batch: Batch):
    with pytest.raises(IncompleteDecisionSet) as exc_info:
        await resolve_revision_matches(
            db_session, batch.revision.id, [decision(batch.fuzzy, "map")]
        )

    assert exc_info.value.missing == {batch.missing.id}

    revision = await _reload(db_session, ScriptModel, batch.revision.id)
    assert revision.status == "RECONCILING"
    assert await count_unresolved(db_session, batch.revision.id) == 2
    john = await _reload(db_session, ElementModel, batch.john.id)
    assert john.name == "JOHN SMITH"


@pytest.mark.asyncio
async def test_duplicate_decision_is_rejected(db_session: AsyncSession, batch: Batch):
    with pytest.raises(IncompleteDecisionSet) as exc_info:
        await resolve_revision_matches(
            db_session,
            batch.revision.id,
            [
                decision(batch.fuzzy, "map"),
                decision(batch.fuzzy, "create_new"),
                decision(batch.missing, "keep"),
            ],
        )

    assert exc_info.value.duplicated == {batch.fuzzy.id}
    assert await count_unresolved(db_session, batch.revision.id) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fuzzy_value, missing_value",
    [("keep", "archive"), ("archive", "keep"), ("map", "map"), ("map", "create_new")],
)
async def test_decision_must_fit_status(
    db_session: AsyncSession, batch: Batch, fuzzy_value, missing_value
):
    with pytest.raises(InvalidDecisionForStatus):
        await resolve_revision_matches(
            db_session,
            batch.revision.id,
            [decision(batch.fuzzy, fuzzy_value), decision(batch.missing, missing_value)],
        )

    assert await count_unresolved(db_session, batch.revision.id) == 2
    bob = await _reload(db_session, ElementModel, batch.bob.id)
    assert bob.status == "ACTIVE"


@pytest.mark.asyncio
async def test_second_resolution_is_rejected(db_session: AsyncSession, batch: Batch):
    decisions = [decision(batch.fuzzy, "map"), decision(batch.missing, "archive")]
    await resolve_revision_matches(db_session, batch.revision.id, decisions)

    with pytest.raises(AlreadyResolved):
        await resolve_revision_matches(
            db_session,
            batch.revision.id,
            [decision(batch.fuzzy, "create_new"), decision(batch.missing, "keep")],
        )

    elements = (
        await db_session.execute(
            select(ElementModel)
            .where(ElementModel.lineage_id == batch.parent.lineage_id)
            .execution_options(populate_existing=True)
        )
    ).scalars().all()
    assert {(e.name, e.status) for e in elements} == {
        ("JOHN SMITHE", "ACTIVE"),
        ("BOB", "ARCHIVED"),
    }


@pytest.mark.asyncio
async def test_unknown_match_is_rejected(db_session: AsyncSession, batch: Batch):
    stray = DecisionInput(match_id=uuid4(), decision=RevisionDecision.MAP)

    with pytest.raises(UnknownMatch) as exc_info:
        await resolve_revision_matches(
            db_session,
            batch.revision.id,
            [decision(batch.fuzzy, "map"), decision(batch.missing, "keep"), stray],
        )

    assert exc_info.value.match_ids == {stray.match_id}


@pytest.mark.asyncio
async def test_unknown_script(db_session: AsyncSession):
    with pytest.raises(ScriptNotFound):
        await resolve_revision_matches(db_session, uuid4(), [])


@pytest.mark.asyncio
async def test_script_must_be_reconciling(db_session: AsyncSession):
    parent = await add_script(db_session)
    revision = await add_script(db_session, status="READY", parent=parent)
    await db_session.commit()

    with pytest.raises(ScriptNotReconciling):
        await resolve_revision_matches(db_session, revision.id, [])


@pytest.mark.asyncio
async def test_two_maps_onto_one_element_conflict(db_session: AsyncSession):
    parent = await add_script(db_session)
    john = await add_element(db_session, parent, "JOHN SMITH")
    revision = await add_script(db_session, status="PROCESSING", parent=parent)
    await db_session.commit()

    await process_revision(
        db_session, revision.id, [detected("JOHN SMITHE"), detected("JOHN SMYTH")]
    )
    first, second = await fetch_revision_matches(db_session, revision.id)
    assert first.old_element_id == second.old_element_id == john.id

    with pytest.raises(ConflictingMapDecision) as exc_info:
        await resolve_revision_matches(
            db_session, revision.id, [decision(first, "map"), decision(second, "map")]
        )
    assert exc_info.value.old_element_id == john.id

    summary = await resolve_revision_matches(
        db_session, revision.id, [decision(first, "map"), decision(second, "create_new")]
    )
    assert summary.decisions == {"map": 1, "create_new": 1}

    john = await _reload(db_session, ElementModel, john.id)
    assert john.name == "JOHN SMITHE"


@pytest.mark.asyncio
async def test_commit_failure_leaves_state_unchanged(
    db_session: AsyncSession, batch: Batch, monkeypatch
):
    # The rollback expires loaded instances; keep plain ids for the checks
    revision_id = batch.revision.id
    bob_id = batch.bob.id
    lineage_id = batch.parent.lineage_id
    decisions = [decision(batch.fuzzy, "create_new"), decision(batch.missing, "archive")]
    real_commit = db_session.commit
    monkeypatch.setattr(
        db_session,
        "commit",
        AsyncMock(side_effect=OperationalError("COMMIT", {}, Exception("disk I/O error"))),
    )

    with pytest.raises(PersistenceFailure):
        await resolve_revision_matches(db_session, revision_id, decisions)

    monkeypatch.setattr(db_session, "commit", real_commit)

    revision = await _reload(db_session, ScriptModel, revision_id)
    assert revision.status == "RECONCILING"
    assert await count_unresolved(db_session, revision_id) == 2
    bob = await _reload(db_session, ElementModel, bob_id)
    assert bob.status == "ACTIVE"
    count = (
        await db_session.execute(
            select(func.count(ElementModel.id)).where(ElementModel.lineage_id == lineage_id)
        )
    ).scalar_one()
    assert count == 2

    # The identical submission can be retried
    summary = await resolve_revision_matches(db_session, revision_id, decisions)
    assert summary.resolved == 2
