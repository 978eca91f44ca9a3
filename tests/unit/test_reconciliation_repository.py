"""Tests for reconciliation store queries."""

from __future__ import annotations

from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from backbone.db.models import ApprovalModel, OptionModel
from backbone.reconciliation.repository import (
    count_unresolved,
    fetch_revision_matches,
    fetch_unresolved_records,
)
from backbone.revisions.processor import process_revision
from conftest import add_element, add_script, detected


@pytest.mark.asyncio
async def test_unresolved_records_summarize_old_elements(db_session: AsyncSession):
    parent = await add_script(db_session)
    john = await add_element(db_session, parent, "JOHN SMITH", pages=[1, 2], minutes=0)
    bob = await add_element(db_session, parent, "BOB", pages=[5], minutes=1)

    active = OptionModel(id=uuid4(), element_id=john.id)
    archived = OptionModel(id=uuid4(), element_id=john.id, status="ARCHIVED")
    db_session.add_all([active, archived])
    await db_session.flush()
    db_session.add_all(
        [
            ApprovalModel(id=uuid4(), option_id=active.id, user_id="u1", decision="APPROVED"),
            ApprovalModel(id=uuid4(), option_id=active.id, user_id="u2", decision="MAYBE"),
            ApprovalModel(id=uuid4(), option_id=archived.id, user_id="u1", decision="REJECTED"),
        ]
    )

    revision = await add_script(db_session, status="PROCESSING", parent=parent)
    await db_session.commit()
    await process_revision(db_session, revision.id, [detected("JOHN SMITHE", pages=[2])])

    records = await fetch_unresolved_records(db_session, revision.id)

    assert [r.match_status for r in records] == ["FUZZY", "MISSING"]
    fuzzy, missing = records

    assert fuzzy.is_fuzzy and not fuzzy.is_missing
    assert fuzzy.detected_name == "JOHN SMITHE"
    assert fuzzy.allowed_decisions == ["create_new", "map"]
    assert fuzzy.old_element.id == john.id
    assert fuzzy.old_element.page_numbers == [1, 2]
    assert fuzzy.old_element.option_count == 1
    assert fuzzy.old_element.approval_count == 2

    assert missing.is_missing
    assert missing.allowed_decisions == ["archive", "keep"]
    assert missing.old_element.id == bob.id
    assert missing.old_element.option_count == 0
    assert missing.old_element.approval_count == 0


@pytest.mark.asyncio
async def test_unresolved_filter_and_count(db_session: AsyncSession):
    parent = await add_script(db_session)
    await add_element(db_session, parent, "BOB")
    await add_element(db_session, parent, "ALICE", minutes=1)
    revision = await add_script(db_session, status="PROCESSING", parent=parent)
    await db_session.commit()
    await process_revision(db_session, revision.id, [])

    matches = await fetch_revision_matches(db_session, revision.id)
    assert [m.detected_name for m in matches] == ["BOB", "ALICE"]
    assert [m.position for m in matches] == [0, 1]
    assert await count_unresolved(db_session, revision.id) == 2

    matches[0].resolved = True
    await db_session.flush()

    unresolved = await fetch_revision_matches(db_session, revision.id, unresolved_only=True)
    assert [m.detected_name for m in unresolved] == ["ALICE"]
    assert await count_unresolved(db_session, revision.id) == 1


@pytest.mark.asyncio
async def test_no_records_for_script_without_batch(db_session: AsyncSession):
    script = await add_script(db_session)
    assert await fetch_unresolved_records(db_session, script.id) == []
