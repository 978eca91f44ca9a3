"""Script lineage routes.

Routes:
- POST /api/scripts/{script_id}/revisions      - Register a new draft of a READY script
- POST /api/scripts/{script_id}/detections     - Hand detector output to the reconciliation pass
- POST /api/scripts/{script_id}/confirm-review - Confirm the initial element review
- GET  /api/scripts/{script_id}/versions       - Version history of the lineage
"""

from __future__ import annotations

from uuid import UUID

import structlog
from fastapi import APIRouter, BackgroundTasks, status
from fastapi.responses import JSONResponse

from backbone.db.connection import get_session
from backbone.detection import DetectionSource, StaticDetectionSource
from backbone.models import DetectionResult, ScriptStatus
from backbone.reconciliation.errors import InvalidScriptState, ReconciliationError, ScriptNotFound
from backbone.reconciliation.repository import fetch_script
from backbone.revisions.lifecycle import confirm_script_review, create_revision, list_versions
from backbone.revisions.processor import process_uploaded_script
from backbone.web.dependencies import to_http_error
from backbone.web.models import (
    CreateRevisionRequest,
    DetectionAcceptedResponse,
    ScriptResponse,
    VersionListResponse,
)

router = APIRouter(tags=["scripts"])
logger = structlog.get_logger()


async def run_detection_job(script_id: UUID, source: DetectionSource) -> None:
    """Background job: run an uploaded draft through processing.

    Nobody awaits the job, so failures end here. The processor has already
    marked the script ERROR by the time a RevisionProcessingError arrives.
    """
    try:
        async with get_session() as session:
            await process_uploaded_script(session, script_id, source)
    except ReconciliationError as exc:
        logger.error(
            "detection_job_failed", script_id=str(script_id), error=exc.code, message=exc.message
        )
        return

    logger.info("detection_job_completed", script_id=str(script_id))


@router.post("/api/scripts/{script_id}/revisions", status_code=status.HTTP_201_CREATED)
async def create_script_revision(
    script_id: UUID, request: CreateRevisionRequest, background_tasks: BackgroundTasks
):
    """Register a revised draft as the next version of the lineage.

    The new script starts in PROCESSING. When the request carries the
    detector output, reconciliation is started after the response is sent;
    otherwise it waits for POST .../detections.
    """
    try:
        async with get_session() as session:
            revision = await create_revision(
                session,
                script_id,
                title=request.title,
                file_name=request.file_name,
                page_count=request.page_count,
            )
            payload = ScriptResponse.from_model(revision)
    except ReconciliationError as exc:
        raise to_http_error(exc) from exc

    if request.detections is not None:
        source = StaticDetectionSource(
            request.detections.elements,
            request.detections.page_count or request.page_count,
        )
        background_tasks.add_task(run_detection_job, payload.id, source)

    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=payload.model_dump(mode="json", by_alias=True),
    )


@router.post("/api/scripts/{script_id}/detections", status_code=status.HTTP_202_ACCEPTED)
async def submit_detections(
    script_id: UUID, detections: DetectionResult, background_tasks: BackgroundTasks
):
    """Start processing a PROCESSING script from detector output.

    First versions go to element review, revisions to reconciliation.
    """
    try:
        async with get_session() as session:
            script = await fetch_script(session, script_id)
            if script is None:
                raise ScriptNotFound(script_id)
            if script.status != ScriptStatus.PROCESSING.value:
                raise InvalidScriptState(f"Script {script_id} is {script.status}, not PROCESSING")
    except ReconciliationError as exc:
        raise to_http_error(exc) from exc

    source = StaticDetectionSource(detections.elements, detections.page_count)
    background_tasks.add_task(run_detection_job, script_id, source)

    payload = DetectionAcceptedResponse(script_id=script_id, status=ScriptStatus.PROCESSING.value)
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content=payload.model_dump(mode="json", by_alias=True),
    )


@router.post("/api/scripts/{script_id}/confirm-review")
async def confirm_review(script_id: UUID):
    """Move a first version from REVIEWING to READY."""
    try:
        async with get_session() as session:
            script = await confirm_script_review(session, script_id)
            payload = ScriptResponse.from_model(script)
    except ReconciliationError as exc:
        raise to_http_error(exc) from exc

    return JSONResponse(content=payload.model_dump(mode="json", by_alias=True))


@router.get("/api/scripts/{script_id}/versions")
async def get_versions(script_id: UUID):
    try:
        async with get_session() as session:
            versions = await list_versions(session, script_id)
    except ReconciliationError as exc:
        raise to_http_error(exc) from exc

    payload = VersionListResponse(
        script_id=script_id,
        lineage_id=versions[0].lineage_id,
        versions=[ScriptResponse.from_model(v) for v in versions],
    )
    return JSONResponse(content=payload.model_dump(mode="json", by_alias=True))
