"""Database queries for the reconciliation store."""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backbone.db.models import (
    ApprovalModel,
    ElementModel,
    OptionModel,
    RevisionMatchModel,
    ScriptModel,
)
from backbone.models import ALLOWED_DECISIONS, MatchStatus, OptionStatus
from backbone.reconciliation.models import OldElementSummary, ReconciliationRecord


async def fetch_script(session: AsyncSession, script_id: UUID) -> ScriptModel | None:
    return await session.get(ScriptModel, script_id)


async def fetch_revision_matches(
    session: AsyncSession,
    script_id: UUID,
    unresolved_only: bool = False,
) -> list[RevisionMatchModel]:
    """Return the revision match batch for a script in display order."""
    stmt = select(RevisionMatchModel).where(RevisionMatchModel.new_script_id == script_id)
    if unresolved_only:
        stmt = stmt.where(RevisionMatchModel.resolved == False)  # noqa: E712
    stmt = stmt.order_by(RevisionMatchModel.position.asc(), RevisionMatchModel.created_at.asc())

    rows = await session.execute(stmt)
    return list(rows.scalars().all())


async def fetch_elements(
    session: AsyncSession, element_ids: Sequence[UUID]
) -> dict[UUID, ElementModel]:
    if not element_ids:
        return {}

    stmt = select(ElementModel).where(ElementModel.id.in_(element_ids))
    rows = await session.execute(stmt)
    return {element.id: element for element in rows.scalars()}


async def count_unresolved(session: AsyncSession, script_id: UUID) -> int:
    stmt = select(func.count(RevisionMatchModel.id)).where(
        RevisionMatchModel.new_script_id == script_id,
        RevisionMatchModel.resolved == False,  # noqa: E712
    )
    return (await session.execute(stmt)).scalar_one()


async def fetch_unresolved_records(
    session: AsyncSession, script_id: UUID
) -> list[ReconciliationRecord]:
    """Return unresolved matches with a display summary of each old element."""
    matches = await fetch_revision_matches(session, script_id, unresolved_only=True)
    if not matches:
        return []

    element_ids = [m.old_element_id for m in matches if m.old_element_id is not None]
    elements = await fetch_elements(session, element_ids)
    option_counts, approval_counts = await _load_counts(session, list(elements))

    records: list[ReconciliationRecord] = []
    for match in matches:
        element = elements.get(match.old_element_id) if match.old_element_id else None
        summary = None
        if element is not None:
            summary = OldElementSummary(
                id=element.id,
                name=element.name,
                type=element.type,
                status=element.status,
                department_id=element.department_id,
                page_numbers=list(element.page_numbers or []),
                option_count=option_counts.get(element.id, 0),
                approval_count=approval_counts.get(element.id, 0),
            )

        allowed = ALLOWED_DECISIONS.get(MatchStatus(match.match_status), frozenset())
        records.append(
            ReconciliationRecord(
                match_id=match.id,
                new_script_id=match.new_script_id,
                detected_name=match.detected_name,
                detected_type=match.detected_type,
                detected_pages=list(match.detected_pages or []),
                detected_highlight_text=match.detected_highlight_text,
                match_status=match.match_status,
                similarity=match.similarity,
                resolved=match.resolved,
                created_at=match.created_at,
                old_element=summary,
                allowed_decisions=sorted(d.value for d in allowed),
            )
        )

    return records


async def _load_counts(
    session: AsyncSession, element_ids: Sequence[UUID]
) -> tuple[dict[UUID, int], dict[UUID, int]]:
    """Active option and approval counts per element."""
    if not element_ids:
        return {}, {}

    options_stmt = (
        select(OptionModel.element_id, func.count(OptionModel.id))
        .where(
            OptionModel.element_id.in_(element_ids),
            OptionModel.status == OptionStatus.ACTIVE.value,
        )
        .group_by(OptionModel.element_id)
    )
    option_counts = {row[0]: row[1] for row in (await session.execute(options_stmt)).all()}

    approvals_stmt = (
        select(OptionModel.element_id, func.count(ApprovalModel.id))
        .join(ApprovalModel, ApprovalModel.option_id == OptionModel.id)
        .where(
            OptionModel.element_id.in_(element_ids),
            OptionModel.status == OptionStatus.ACTIVE.value,
        )
        .group_by(OptionModel.element_id)
    )
    approval_counts = {row[0]: row[1] for row in (await session.execute(approvals_stmt)).all()}

    return option_counts, approval_counts
