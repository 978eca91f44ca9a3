"""Backbone Pydantic models and enumerations shared across layers."""

from __future__ import annotations

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ScriptStatus(str, Enum):
    """Lifecycle of one script revision."""

    PROCESSING = "PROCESSING"
    REVIEWING = "REVIEWING"
    RECONCILING = "RECONCILING"
    READY = "READY"
    ERROR = "ERROR"


class ElementType(str, Enum):
    """Kinds of creative element tracked across revisions."""

    CHARACTER = "CHARACTER"
    LOCATION = "LOCATION"
    PROP = "PROP"
    OTHER = "OTHER"


class ElementStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class ElementSource(str, Enum):
    AUTO = "AUTO"
    MANUAL = "MANUAL"


class OptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class MatchStatus(str, Enum):
    """Classifier outcome for a detected or prior element.

    Only FUZZY and MISSING are persisted; EXACT and NEW are auto-applied.
    """

    EXACT = "EXACT"
    FUZZY = "FUZZY"
    NEW = "NEW"
    MISSING = "MISSING"


class RevisionDecision(str, Enum):
    """User decision for a persisted revision match."""

    MAP = "map"
    CREATE_NEW = "create_new"
    KEEP = "keep"
    ARCHIVE = "archive"


# Decisions that are legal for each persisted match status
ALLOWED_DECISIONS: dict[MatchStatus, frozenset[RevisionDecision]] = {
    MatchStatus.FUZZY: frozenset({RevisionDecision.MAP, RevisionDecision.CREATE_NEW}),
    MatchStatus.MISSING: frozenset({RevisionDecision.KEEP, RevisionDecision.ARCHIVE}),
}


class DetectedElement(BaseModel):
    """Element detected in a new script revision (not yet reconciled)."""

    name: str
    type: ElementType
    pages: list[int] = Field(default_factory=list)
    highlight_text: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("name must not be blank")
        return v

    @field_validator("pages")
    @classmethod
    def validate_pages(cls, v: list[int]) -> list[int]:
        if any(page < 1 for page in v):
            raise ValueError("page numbers are 1-based")
        return v

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "JOHN SMITHE",
                "type": "CHARACTER",
                "pages": [1, 4, 12],
                "highlight_text": "JOHN SMITHE enters, soaked.",
            }
        }
    )


class DecisionInput(BaseModel):
    """One user decision for a revision match."""

    match_id: UUID
    decision: RevisionDecision
    department_id: str | None = None


class DetectionResult(BaseModel):
    """Output of the detection source for one uploaded draft."""

    model_config = ConfigDict(populate_by_name=True)

    elements: list[DetectedElement] = Field(default_factory=list)
    page_count: int | None = Field(default=None, alias="pageCount")
