"""Revision reconciliation routes.

Handles the human review step between a revision upload and a READY script.

Routes:
- GET  /api/scripts/{script_id}/revision-matches          - Unresolved matches
- POST /api/scripts/{script_id}/revision-matches/resolve  - Apply a decision set
"""

from __future__ import annotations

from uuid import UUID

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from backbone.db.connection import get_session
from backbone.models import ScriptStatus
from backbone.reconciliation import (
    ReconciliationError,
    fetch_unresolved_records,
    resolve_revision_matches,
)
from backbone.reconciliation.errors import ScriptNotFound, ScriptNotReconciling
from backbone.reconciliation.repository import fetch_script
from backbone.web.dependencies import to_http_error
from backbone.web.models import (
    OldElementResponse,
    ResolveRequest,
    ResolveResponse,
    RevisionMatchListResponse,
    RevisionMatchResponse,
)

logger = structlog.get_logger()

router = APIRouter(tags=["revision-matches"])


def _to_response(record) -> RevisionMatchResponse:
    old = record.old_element
    return RevisionMatchResponse(
        id=record.match_id,
        detected_name=record.detected_name,
        detected_type=record.detected_type,
        detected_pages=record.detected_pages,
        detected_highlight_text=record.detected_highlight_text,
        match_status=record.match_status,
        similarity=record.similarity,
        old_element=(
            OldElementResponse(
                id=old.id,
                name=old.name,
                type=old.type,
                status=old.status,
                department_id=old.department_id,
                page_numbers=old.page_numbers,
                option_count=old.option_count,
                approval_count=old.approval_count,
            )
            if old is not None
            else None
        ),
        allowed_decisions=record.allowed_decisions,
        created_at=record.created_at,
    )


@router.get("/api/scripts/{script_id}/revision-matches")
async def get_revision_matches(script_id: UUID):
    """List unresolved revision matches for a script under reconciliation.

    Each match carries a summary of the old element it refers to (pages,
    active option count, approval count) so the reviewer can see what a
    decision carries along or leaves behind.
    """
    async with get_session() as session:
        script = await fetch_script(session, script_id)
        if script is None:
            raise to_http_error(ScriptNotFound(script_id))
        if script.status != ScriptStatus.RECONCILING.value:
            raise to_http_error(ScriptNotReconciling(script_id, script.status))

        records = await fetch_unresolved_records(session, script_id)

    payload = RevisionMatchListResponse(
        script_id=script_id,
        count=len(records),
        matches=[_to_response(record) for record in records],
    )
    return JSONResponse(content=payload.model_dump(mode="json", by_alias=True))


@router.post("/api/scripts/{script_id}/revision-matches/resolve")
async def resolve_matches(script_id: UUID, request: ResolveRequest):
    """Apply one decision per unresolved match and mark the script READY.

    The submission is all-or-nothing: any rejection leaves every match
    unresolved and the script RECONCILING.
    """
    decisions = [payload.to_input() for payload in request.decisions]
    resolved_by = request.resolved_by or "system"

    try:
        async with get_session() as session:
            summary = await resolve_revision_matches(
                session, script_id, decisions, resolved_by=resolved_by
            )
    except ReconciliationError as exc:
        logger.warning(
            "resolve_request_rejected", script_id=str(script_id), error=exc.code
        )
        raise to_http_error(exc) from exc

    return ResolveResponse(resolved=summary.resolved).model_dump()
