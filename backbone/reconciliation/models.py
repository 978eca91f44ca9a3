"""Data structures consumed by the reconciliation UI."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID


@dataclass(slots=True)
class OldElementSummary:
    id: UUID
    name: str
    type: str
    status: str
    department_id: str | None
    page_numbers: list[int]
    option_count: int = 0
    approval_count: int = 0


@dataclass(slots=True)
class ReconciliationRecord:
    match_id: UUID
    new_script_id: UUID
    detected_name: str
    detected_type: str
    detected_pages: list[int]
    detected_highlight_text: str | None
    match_status: str
    similarity: float | None
    resolved: bool
    created_at: datetime
    old_element: OldElementSummary | None = None
    allowed_decisions: list[str] = field(default_factory=list)

    @property
    def is_fuzzy(self) -> bool:
        return self.match_status == "FUZZY"

    @property
    def is_missing(self) -> bool:
        return self.match_status == "MISSING"
