"""Match classification for script revisions.

Routes every detected element to EXACT (auto-link), FUZZY (human decision) or
NEW (auto-create), and reports prior elements with no surviving counterpart as
MISSING.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from backbone.canonical.normalize import merge_pages, normalize_name
from backbone.matching.candidate_generator import partition_by_type
from backbone.matching.fuzzy_ranker import FuzzyRanker
from backbone.matching.models import (
    ClassificationReport,
    ExactLink,
    ExistingElement,
    FuzzyCandidate,
)
from backbone.models import DetectedElement

logger = logging.getLogger(__name__)


def merge_detections(detected: list[DetectedElement]) -> list[DetectedElement]:
    """Collapse detections that share a normalized name and type.

    The first occurrence keeps its position; page lists are unioned.
    """
    merged: dict[tuple[str, str], DetectedElement] = {}

    for element in detected:
        key = (normalize_name(element.name), element.type.value)
        existing = merged.get(key)
        if existing is None:
            merged[key] = element
            continue

        merged[key] = existing.model_copy(
            update={
                "pages": merge_pages(existing.pages, element.pages),
                "highlight_text": existing.highlight_text or element.highlight_text,
            }
        )

    return list(merged.values())


class MatchClassifier:
    """Classifies a revision's detections against the prior element pool."""

    def __init__(self, ranker: FuzzyRanker | None = None):
        self.ranker = ranker or FuzzyRanker()

    @property
    def threshold(self) -> float:
        return self.ranker.min_score

    def classify(
        self, detected: list[DetectedElement], pool: list[ExistingElement]
    ) -> ClassificationReport:
        """Classify detections deterministically.

        Pipeline:
        1. Merge duplicate detections (same normalized name + type)
        2. Exact pass: identical normalized names claim the oldest same-type element
        3. Fuzzy pass: best unclaimed same-type candidate >= threshold, else NEW
        4. Pool elements neither claimed nor a fuzzy candidate are MISSING

        An exact-claimed element is bound to its detection and is never offered
        as a fuzzy candidate. A fuzzy candidate may be shared by several
        detections; the resolver rejects conflicting maps.

        Args:
            detected: Detections for the new revision, in script order
            pool: ACTIVE elements of the lineage

        Returns:
            ClassificationReport
        """
        report = ClassificationReport()
        buckets = partition_by_type(pool)

        # Normalized name -> same-type elements, oldest first
        by_name: dict[tuple[str, str], list[ExistingElement]] = defaultdict(list)
        for type_name, bucket in buckets.items():
            for element in bucket:
                by_name[(type_name, normalize_name(element.name))].append(element)

        claimed: set = set()
        unmatched: list[DetectedElement] = []

        for element in merge_detections(detected):
            key = (element.type.value, normalize_name(element.name))
            target = next((e for e in by_name.get(key, []) if e.id not in claimed), None)
            if target is None:
                unmatched.append(element)
                continue

            claimed.add(target.id)
            report.exact.append(ExactLink(detected=element, element=target))

        candidate_ids: set = set()
        for element in unmatched:
            bucket = [
                e for e in buckets.get(element.type.value, []) if e.id not in claimed
            ]
            best = self.ranker.best_candidate(element, bucket)

            if best is None:
                report.new.append(element)
                continue

            candidate_ids.add(best.element.id)
            report.fuzzy.append(
                FuzzyCandidate(detected=element, element=best.element, similarity=best.score)
            )

        report.missing = [
            e
            for e in sorted(pool, key=lambda e: (e.created_at, str(e.id)))
            if e.id not in claimed and e.id not in candidate_ids
        ]

        logger.info("Classified revision detections: %s", report.summary())
        return report


def classify_detections(
    detected: list[DetectedElement],
    pool: list[ExistingElement],
    threshold: float | None = None,
) -> ClassificationReport:
    """Convenience function: classify detections against a pool.

    Args:
        detected: Detections for the new revision
        pool: ACTIVE elements of the lineage
        threshold: Optional fuzzy threshold override

    Returns:
        ClassificationReport
    """
    classifier = MatchClassifier(FuzzyRanker(min_score=threshold))
    return classifier.classify(detected, pool)
