"""Data models for the revision matching engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from backbone.models import DetectedElement


@dataclass(frozen=True)
class ExistingElement:
    """Snapshot of an ACTIVE element from the prior revision of a lineage."""

    id: UUID
    name: str
    type: str
    created_at: datetime
    page_numbers: tuple[int, ...] = ()

    @classmethod
    def from_model(cls, model) -> ExistingElement:
        return cls(
            id=model.id,
            name=model.name,
            type=model.type,
            created_at=model.created_at,
            page_numbers=tuple(model.page_numbers or ()),
        )


@dataclass(frozen=True)
class ScoredCandidate:
    """An existing element with its similarity to a detected element."""

    element: ExistingElement
    score: float  # 0-1, 1.0 = identical normalized names

    @property
    def sort_key(self) -> tuple[float, datetime, str]:
        # Highest score first, then the oldest element, then id for determinism
        return (-self.score, self.element.created_at, str(self.element.id))


@dataclass(frozen=True)
class ExactLink:
    """Detected element auto-linked to an existing element by identical name."""

    detected: DetectedElement
    element: ExistingElement


@dataclass(frozen=True)
class FuzzyCandidate:
    """Detected element whose best candidate needs a human decision."""

    detected: DetectedElement
    element: ExistingElement
    similarity: float


@dataclass
class ClassificationReport:
    """Outcome of classifying one revision's detections against the prior pool."""

    exact: list[ExactLink] = field(default_factory=list)
    fuzzy: list[FuzzyCandidate] = field(default_factory=list)
    new: list[DetectedElement] = field(default_factory=list)
    missing: list[ExistingElement] = field(default_factory=list)

    @property
    def requires_reconciliation(self) -> bool:
        """True when at least one FUZZY or MISSING decision must be made."""
        return bool(self.fuzzy or self.missing)

    def summary(self) -> dict[str, int]:
        return {
            "exact": len(self.exact),
            "fuzzy": len(self.fuzzy),
            "new": len(self.new),
            "missing": len(self.missing),
        }
