"""Resolver: validates a batch of user decisions and applies it atomically."""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from uuid import UUID, uuid4

import structlog
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backbone.db.models import ElementModel, RevisionMatchModel, ScriptModel, utcnow
from backbone.models import (
    ALLOWED_DECISIONS,
    DecisionInput,
    ElementSource,
    ElementStatus,
    MatchStatus,
    RevisionDecision,
    ScriptStatus,
)
from backbone.reconciliation.errors import (
    AlreadyResolved,
    ConflictingMapDecision,
    IncompleteDecisionSet,
    InvalidDecisionForStatus,
    PersistenceFailure,
    ReconciliationError,
    ScriptNotFound,
    ScriptNotReconciling,
    UnknownMatch,
)
from backbone.reconciliation.repository import (
    fetch_elements,
    fetch_revision_matches,
    fetch_script,
)

logger = structlog.get_logger(__name__)


@dataclass
class ResolutionSummary:
    """What a successful resolve did."""

    script_id: UUID
    resolved: int = 0
    decisions: dict[str, int] = field(default_factory=dict)
    created_element_ids: list[UUID] = field(default_factory=list)
    archived_element_ids: list[UUID] = field(default_factory=list)


async def resolve_revision_matches(
    session: AsyncSession,
    script_id: UUID,
    decisions: Sequence[DecisionInput],
    resolved_by: str = "system",
) -> ResolutionSummary:
    """Apply a complete decision set for a RECONCILING script.

    All validation happens before any mutation. Application is a single
    transaction: every match is marked resolved with its decision, every
    element mutation is performed, and the script moves to READY. Either
    everything commits or nothing does.

    Args:
        session: SQLAlchemy async session (committed or rolled back here)
        script_id: The new revision under reconciliation
        decisions: One decision per unresolved match
        resolved_by: User id or email recorded on each match

    Returns:
        ResolutionSummary

    Raises:
        ScriptNotFound, UnknownMatch, AlreadyResolved, ScriptNotReconciling,
        IncompleteDecisionSet, InvalidDecisionForStatus, ConflictingMapDecision,
        PersistenceFailure
    """
    log = logger.bind(script_id=str(script_id), resolved_by=resolved_by)

    try:
        script, matches_by_id, elements = await _validate(session, script_id, decisions)
    except ReconciliationError as exc:
        log.warning("revision_resolve_rejected", error=exc.code, detail=exc.message)
        raise

    summary = ResolutionSummary(script_id=script_id)
    try:
        await _apply(session, script, matches_by_id, elements, decisions, resolved_by, summary)
        await session.commit()
    except ReconciliationError as exc:
        await session.rollback()
        log.warning("revision_resolve_rejected", error=exc.code, detail=exc.message)
        raise
    except SQLAlchemyError as exc:
        await session.rollback()
        log.error("revision_resolve_failed", error=str(exc))
        raise PersistenceFailure(
            f"Could not apply decisions for script {script_id}; no changes were made"
        ) from exc

    log.info("revision_matches_resolved", resolved=summary.resolved, **summary.decisions)
    return summary


async def _validate(
    session: AsyncSession,
    script_id: UUID,
    decisions: Sequence[DecisionInput],
) -> tuple[ScriptModel, dict[UUID, RevisionMatchModel], dict[UUID, ElementModel]]:
    script = await fetch_script(session, script_id)
    if script is None:
        raise ScriptNotFound(script_id)

    matches = await fetch_revision_matches(session, script_id)
    matches_by_id = {m.id: m for m in matches}
    submitted = [d.match_id for d in decisions]

    unknown = {match_id for match_id in submitted if match_id not in matches_by_id}
    if unknown:
        raise UnknownMatch(unknown)

    # Checked before status so a resubmission reports the double submit itself
    already = {match_id for match_id in submitted if matches_by_id[match_id].resolved}
    if already:
        raise AlreadyResolved(already)

    if script.status != ScriptStatus.RECONCILING.value:
        raise ScriptNotReconciling(script_id, script.status)

    counts = Counter(submitted)
    duplicated = {match_id for match_id, n in counts.items() if n > 1}
    missing = {m.id for m in matches if not m.resolved} - set(counts)
    if missing or duplicated:
        raise IncompleteDecisionSet(missing=missing, duplicated=duplicated)

    map_targets: dict[UUID, list[UUID]] = defaultdict(list)
    for decision in decisions:
        match = matches_by_id[decision.match_id]
        status = MatchStatus(match.match_status)
        allowed = ALLOWED_DECISIONS.get(status, frozenset())
        if decision.decision not in allowed:
            raise InvalidDecisionForStatus(
                match.id, decision.decision.value, status.value, [d.value for d in allowed]
            )
        if decision.decision == RevisionDecision.MAP:
            map_targets[match.old_element_id].append(match.id)

    for old_element_id, match_ids in sorted(map_targets.items(), key=lambda kv: str(kv[0])):
        if len(match_ids) > 1:
            raise ConflictingMapDecision(old_element_id, match_ids)

    element_ids = [
        matches_by_id[d.match_id].old_element_id
        for d in decisions
        if d.decision != RevisionDecision.CREATE_NEW
    ]
    elements = await fetch_elements(session, [i for i in element_ids if i is not None])
    for decision in decisions:
        if decision.decision == RevisionDecision.CREATE_NEW:
            continue
        match = matches_by_id[decision.match_id]
        if match.old_element_id not in elements:
            raise ReconciliationError(
                f"Match {match.id} references element {match.old_element_id}, which no longer exists"
            )

    return script, matches_by_id, elements


async def _apply(
    session: AsyncSession,
    script: ScriptModel,
    matches_by_id: dict[UUID, RevisionMatchModel],
    elements: dict[UUID, ElementModel],
    decisions: Sequence[DecisionInput],
    resolved_by: str,
    summary: ResolutionSummary,
) -> None:
    now = utcnow()
    tally: Counter[str] = Counter()

    for decision in decisions:
        match = matches_by_id[decision.match_id]

        # Conditional write: a concurrent resolver that got here first leaves 0 rows
        result = await session.execute(
            update(RevisionMatchModel)
            .where(
                RevisionMatchModel.id == match.id,
                RevisionMatchModel.resolved == False,  # noqa: E712
            )
            .values(
                user_decision=decision.decision.value,
                department_id=decision.department_id,
                resolved=True,
                resolved_by=resolved_by,
                resolved_at=now,
            )
        )
        if result.rowcount != 1:
            raise AlreadyResolved([match.id])

        element = elements.get(match.old_element_id) if match.old_element_id else None
        _apply_decision(session, script, match, decision, element, summary)
        tally[decision.decision.value] += 1

    result = await session.execute(
        update(ScriptModel)
        .where(
            ScriptModel.id == script.id,
            ScriptModel.status == ScriptStatus.RECONCILING.value,
        )
        .values(status=ScriptStatus.READY.value, updated_at=now)
    )
    if result.rowcount != 1:
        raise ScriptNotReconciling(script.id, script.status)

    summary.resolved = sum(tally.values())
    summary.decisions = dict(tally)


def _apply_decision(
    session: AsyncSession,
    script: ScriptModel,
    match: RevisionMatchModel,
    decision: DecisionInput,
    element: ElementModel | None,
    summary: ResolutionSummary,
) -> None:
    if decision.decision == RevisionDecision.MAP:
        # Options and approvals stay attached to this identity
        element.name = match.detected_name
        element.type = match.detected_type
        element.page_numbers = list(match.detected_pages or [])
        element.highlight_text = match.detected_highlight_text
        element.script_id = script.id
        if decision.department_id is not None:
            element.department_id = decision.department_id

    elif decision.decision == RevisionDecision.CREATE_NEW:
        new_element = ElementModel(
            id=uuid4(),
            lineage_id=script.lineage_id,
            script_id=script.id,
            name=match.detected_name,
            type=match.detected_type,
            status=ElementStatus.ACTIVE.value,
            source=ElementSource.AUTO.value,
            department_id=decision.department_id,
            page_numbers=list(match.detected_pages or []),
            highlight_text=match.detected_highlight_text,
        )
        session.add(new_element)
        summary.created_element_ids.append(new_element.id)

    elif decision.decision == RevisionDecision.KEEP:
        element.script_id = script.id
        if decision.department_id is not None:
            element.department_id = decision.department_id

    elif decision.decision == RevisionDecision.ARCHIVE:
        element.status = ElementStatus.ARCHIVED.value
        summary.archived_element_ids.append(element.id)
