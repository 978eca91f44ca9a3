"""Detection source interface.

Script text extraction and element detection live outside this package. The
engine only needs something that turns an uploaded draft into a
``DetectionResult``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol
from uuid import UUID

from backbone.models import DetectedElement, DetectionResult


class DetectionSource(Protocol):
    """Produces the detected elements for one uploaded script revision."""

    async def detect(self, script_id: UUID) -> DetectionResult: ...


class StaticDetectionSource:
    """Detection source backed by a fixed result (tests, replays, imports)."""

    def __init__(self, elements: list[DetectedElement], page_count: int | None = None):
        self._result = DetectionResult(elements=list(elements), page_count=page_count)

    async def detect(self, script_id: UUID) -> DetectionResult:
        return self._result


class JsonDetectionSource:
    """Detection source reading a JSON export of the external detector.

    Accepts either ``{"elements": [...], "pageCount": n}`` or a bare list of
    elements.
    """

    def __init__(self, path: Path):
        self.path = path

    async def detect(self, script_id: UUID) -> DetectionResult:
        return load_detection_file(self.path)


def load_detection_file(path: Path) -> DetectionResult:
    """Parse a detection export file.

    Raises:
        FileNotFoundError: If the file does not exist
        pydantic.ValidationError: If the content is not a valid detection result
    """
    raw = path.read_text(encoding="utf-8")
    if raw.lstrip().startswith("["):
        raw = '{"elements": ' + raw + "}"
    return DetectionResult.model_validate_json(raw)
