"""Shared Pydantic models for the Backbone web API.

Wire format is camelCase; Python attributes stay snake_case.

Usage:
    from backbone.web.models import ResolveRequest

    @router.post("/api/scripts/{script_id}/revision-matches/resolve")
    async def resolve(script_id: UUID, request: ResolveRequest):
        ...
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from backbone.models import DecisionInput, DetectionResult, RevisionDecision


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ============================================================================
# Revision Match Models
# ============================================================================


class DecisionPayload(CamelModel):
    """One decision in a resolve request.

    Used by: POST /api/scripts/{script_id}/revision-matches/resolve
    """

    match_id: UUID = Field(alias="matchId")
    decision: RevisionDecision
    department_id: Optional[str] = Field(default=None, alias="departmentId")

    def to_input(self) -> DecisionInput:
        return DecisionInput(
            match_id=self.match_id,
            decision=self.decision,
            department_id=self.department_id,
        )


class ResolveRequest(CamelModel):
    """Complete decision set for a script under reconciliation.

    Used by: POST /api/scripts/{script_id}/revision-matches/resolve
    """

    decisions: List[DecisionPayload]
    resolved_by: Optional[str] = Field(default=None, alias="resolvedBy")


class ResolveResponse(BaseModel):
    message: str = "Reconciliation complete"
    resolved: int


class OldElementResponse(CamelModel):
    id: UUID
    name: str
    type: str
    status: str
    department_id: Optional[str] = Field(default=None, alias="departmentId")
    page_numbers: List[int] = Field(default_factory=list, alias="pageNumbers")
    option_count: int = Field(default=0, alias="optionCount")
    approval_count: int = Field(default=0, alias="approvalCount")


class RevisionMatchResponse(CamelModel):
    """One unresolved revision match as shown in the reconciliation UI."""

    id: UUID
    detected_name: str = Field(alias="detectedName")
    detected_type: str = Field(alias="detectedType")
    detected_pages: List[int] = Field(default_factory=list, alias="detectedPages")
    detected_highlight_text: Optional[str] = Field(default=None, alias="detectedHighlightText")
    match_status: str = Field(alias="matchStatus")
    similarity: Optional[float] = None
    old_element: Optional[OldElementResponse] = Field(default=None, alias="oldElement")
    allowed_decisions: List[str] = Field(default_factory=list, alias="allowedDecisions")
    created_at: datetime = Field(alias="createdAt")


class RevisionMatchListResponse(CamelModel):
    """Used by: GET /api/scripts/{script_id}/revision-matches"""

    script_id: UUID = Field(alias="scriptId")
    count: int
    matches: List[RevisionMatchResponse]


# ============================================================================
# Script Lifecycle Models
# ============================================================================


class CreateRevisionRequest(CamelModel):
    """Used by: POST /api/scripts/{script_id}/revisions"""

    title: Optional[str] = None
    file_name: Optional[str] = Field(default=None, alias="fileName")
    page_count: Optional[int] = Field(default=None, alias="pageCount", ge=1)
    # Detector output for the draft; when present reconciliation starts in the background
    detections: Optional[DetectionResult] = None


class DetectionAcceptedResponse(CamelModel):
    """Used by: POST /api/scripts/{script_id}/detections"""

    script_id: UUID = Field(alias="scriptId")
    status: str
    message: str = "Processing started"


class ScriptResponse(CamelModel):
    id: UUID
    production_id: str = Field(alias="productionId")
    title: str
    file_name: Optional[str] = Field(default=None, alias="fileName")
    version: int
    parent_script_id: Optional[UUID] = Field(default=None, alias="parentScriptId")
    lineage_id: UUID = Field(alias="lineageId")
    status: str
    page_count: Optional[int] = Field(default=None, alias="pageCount")
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_model(cls, script) -> ScriptResponse:
        return cls(
            id=script.id,
            production_id=script.production_id,
            title=script.title,
            file_name=script.file_name,
            version=script.version,
            parent_script_id=script.parent_script_id,
            lineage_id=script.lineage_id,
            status=script.status,
            page_count=script.page_count,
            created_at=script.created_at,
        )


class VersionListResponse(CamelModel):
    """Used by: GET /api/scripts/{script_id}/versions"""

    script_id: UUID = Field(alias="scriptId")
    lineage_id: UUID = Field(alias="lineageId")
    versions: List[ScriptResponse]
