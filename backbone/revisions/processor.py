"""Revision processing: classify a new draft and write its reconciliation batch.

Coordinates detection → pool loading → classification → auto-apply of EXACT
and NEW → persistence of FUZZY/MISSING matches → script status transition.
"""

from __future__ import annotations

import logging
from uuid import UUID, uuid4

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from backbone.config import get_config
from backbone.db.models import ElementModel, RevisionMatchModel, ScriptModel
from backbone.detection import DetectionSource
from backbone.matching.candidate_generator import CandidateGenerator
from backbone.matching.classifier import MatchClassifier, merge_detections
from backbone.matching.models import ClassificationReport
from backbone.models import (
    DetectedElement,
    ElementSource,
    ElementStatus,
    MatchStatus,
    ScriptStatus,
)
from backbone.reconciliation.errors import (
    InvalidScriptState,
    RevisionProcessingError,
    ScriptNotFound,
)
from backbone.reconciliation.repository import fetch_elements

logger = logging.getLogger(__name__)


class RevisionProcessor:
    """Runs the reconciliation pass for one uploaded revision."""

    def __init__(self, session: AsyncSession, classifier: MatchClassifier | None = None):
        """Initialize processor with database session.

        Args:
            session: SQLAlchemy async session (committed or rolled back here)
            classifier: Optional classifier (defaults to configured threshold)
        """
        self.session = session
        self.config = get_config()
        self.classifier = classifier or MatchClassifier()
        self.candidate_generator = CandidateGenerator(session)

    async def process(
        self,
        script_id: UUID,
        detected: list[DetectedElement],
        page_count: int | None = None,
    ) -> ClassificationReport:
        """Reconcile a new revision against its lineage.

        Pipeline:
        1. Load ACTIVE elements of the lineage (the matching pool)
        2. Classify detections (EXACT / FUZZY / NEW / MISSING)
        3. EXACT: keep identity, move element to this revision, refresh pages
        4. NEW: create AUTO elements
        5. FUZZY + MISSING: write the revision match batch
        6. Script → RECONCILING if the batch is non-empty, else READY

        Steps 3-6 commit together; the batch is flushed before the status flips.

        Raises:
            ScriptNotFound: If the script does not exist
            InvalidScriptState: If the script is not PROCESSING or has no parent
            RevisionProcessingError: If classification or persistence fails
                (the script is marked ERROR)
        """
        script = await self._load_processing_script(script_id)
        if script.parent_script_id is None:
            raise InvalidScriptState(
                f"Script {script_id} is the first version of its lineage; nothing to reconcile"
            )

        try:
            self._check_size(detected)
            pool = await self.candidate_generator.load_pool(script.lineage_id)
            report = self.classifier.classify(detected, pool)
            await self._apply(script, report, page_count)
            await self.session.commit()
        except Exception as exc:
            await self._fail(script_id, exc)
            raise RevisionProcessingError(
                f"Revision processing failed for script {script_id}: {exc}"
            ) from exc

        logger.info(
            "Revision %s processed (status=%s): %s",
            script_id,
            script.status,
            report.summary(),
        )
        return report

    async def process_initial(
        self,
        script_id: UUID,
        detected: list[DetectedElement],
        page_count: int | None = None,
    ) -> list[ElementModel]:
        """Create elements for the first version of a lineage (PROCESSING → REVIEWING)."""
        script = await self._load_processing_script(script_id)
        if script.parent_script_id is not None:
            raise InvalidScriptState(
                f"Script {script_id} is a revision; use process() to reconcile it"
            )

        try:
            self._check_size(detected)
            elements = [
                self._new_element(script, element) for element in merge_detections(detected)
            ]
            self.session.add_all(elements)
            await self.session.flush()

            script.status = ScriptStatus.REVIEWING.value
            if page_count is not None:
                script.page_count = page_count
            await self.session.commit()
        except Exception as exc:
            await self._fail(script_id, exc)
            raise RevisionProcessingError(
                f"Initial processing failed for script {script_id}: {exc}"
            ) from exc

        logger.info("Script %s processed: %d elements created", script_id, len(elements))
        return elements

    async def _load_processing_script(self, script_id: UUID) -> ScriptModel:
        script = await self.session.get(ScriptModel, script_id)
        if script is None:
            raise ScriptNotFound(script_id)
        if script.status != ScriptStatus.PROCESSING.value:
            raise InvalidScriptState(
                f"Script {script_id} is {script.status}; only PROCESSING scripts can be processed"
            )
        return script

    def _check_size(self, detected: list[DetectedElement]) -> None:
        limit = self.config.matching.max_elements_per_revision
        if len(detected) > limit:
            raise ValueError(f"{len(detected)} detected elements exceeds the limit of {limit}")

    async def _apply(
        self, script: ScriptModel, report: ClassificationReport, page_count: int | None
    ) -> None:
        # EXACT: reuse identity
        elements = await fetch_elements(self.session, [link.element.id for link in report.exact])
        for link in report.exact:
            element = elements[link.element.id]
            element.script_id = script.id
            element.page_numbers = list(link.detected.pages)
            element.highlight_text = link.detected.highlight_text

        # NEW: auto-create
        self.session.add_all([self._new_element(script, element) for element in report.new])

        position = 0
        for candidate in report.fuzzy:
            self.session.add(
                RevisionMatchModel(
                    new_script_id=script.id,
                    detected_name=candidate.detected.name,
                    detected_type=candidate.detected.type.value,
                    detected_pages=list(candidate.detected.pages),
                    detected_highlight_text=candidate.detected.highlight_text,
                    position=position,
                    match_status=MatchStatus.FUZZY.value,
                    old_element_id=candidate.element.id,
                    similarity=candidate.similarity,
                    resolved=False,
                )
            )
            position += 1

        for missing in report.missing:
            self.session.add(
                RevisionMatchModel(
                    new_script_id=script.id,
                    detected_name=missing.name,
                    detected_type=missing.type,
                    detected_pages=[],
                    position=position,
                    match_status=MatchStatus.MISSING.value,
                    old_element_id=missing.id,
                    similarity=None,
                    resolved=False,
                )
            )
            position += 1

        # Whole batch written before the script becomes visible as RECONCILING
        await self.session.flush()

        if report.requires_reconciliation:
            script.status = ScriptStatus.RECONCILING.value
        else:
            script.status = ScriptStatus.READY.value
        if page_count is not None:
            script.page_count = page_count

    @staticmethod
    def _new_element(script: ScriptModel, detected: DetectedElement) -> ElementModel:
        return ElementModel(
            id=uuid4(),
            lineage_id=script.lineage_id,
            script_id=script.id,
            name=detected.name,
            type=detected.type.value,
            status=ElementStatus.ACTIVE.value,
            source=ElementSource.AUTO.value,
            page_numbers=list(detected.pages),
            highlight_text=detected.highlight_text,
        )

    async def _fail(self, script_id: UUID, exc: Exception) -> None:
        """Roll back the pass and mark the script ERROR in its own transaction."""
        logger.error("Revision processing error for %s: %s", script_id, exc, exc_info=exc)
        await self.session.rollback()
        await self.session.execute(
            update(ScriptModel)
            .where(ScriptModel.id == script_id)
            .values(status=ScriptStatus.ERROR.value)
        )
        await self.session.commit()


async def process_revision(
    session: AsyncSession,
    script_id: UUID,
    detected: list[DetectedElement],
    page_count: int | None = None,
) -> ClassificationReport:
    """Convenience function: reconcile a new revision."""
    return await RevisionProcessor(session).process(script_id, detected, page_count)


async def process_initial_script(
    session: AsyncSession,
    script_id: UUID,
    detected: list[DetectedElement],
    page_count: int | None = None,
) -> list[ElementModel]:
    """Convenience function: create elements for the first version of a lineage."""
    return await RevisionProcessor(session).process_initial(script_id, detected, page_count)


async def process_uploaded_script(
    session: AsyncSession,
    script_id: UUID,
    source: DetectionSource,
) -> ClassificationReport | list[ElementModel]:
    """Background-job entry point: detect, then process as initial or revision."""
    script = await session.get(ScriptModel, script_id)
    if script is None:
        raise ScriptNotFound(script_id)

    result = await source.detect(script_id)
    if script.parent_script_id is None:
        return await process_initial_script(session, script_id, result.elements, result.page_count)
    return await process_revision(session, script_id, result.elements, result.page_count)
