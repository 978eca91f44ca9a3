"""Fuzzy ranking using RapidFuzz for revision matching.

Ranks same-type candidates by normalized Levenshtein similarity over the
normalized element name.
"""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein

from backbone.canonical.normalize import normalize_name
from backbone.config import get_config
from backbone.matching.models import ExistingElement, ScoredCandidate
from backbone.models import DetectedElement


def name_similarity(a: str, b: str) -> float:
    """Similarity of two element names in [0, 1].

    1 - edit_distance / max_len over the normalized forms; names that are
    identical after normalization score exactly 1.0.
    """
    norm_a = normalize_name(a)
    norm_b = normalize_name(b)
    if norm_a == norm_b:
        return 1.0
    return Levenshtein.normalized_similarity(norm_a, norm_b)


class FuzzyRanker:
    """RapidFuzz string similarity ranker."""

    def __init__(self, min_score: float | None = None):
        """Initialize ranker.

        Args:
            min_score: Fuzzy threshold (defaults to config matching.fuzzy_threshold)
        """
        if min_score is None:
            min_score = get_config().matching.fuzzy_threshold
        self.min_score = min_score

    def rank(
        self, detected: DetectedElement, candidates: list[ExistingElement]
    ) -> list[ScoredCandidate]:
        """Rank candidates by name similarity.

        Ranking logic:
        1. Skip candidates of a different type
        2. Compute normalized Levenshtein similarity (0-1)
        3. Filter: keep only scores >= min_score
        4. Sort: descending score, then oldest element first

        Args:
            detected: Element detected in the new revision
            candidates: Existing elements (normally one type bucket)

        Returns:
            Scored candidates, best first
        """
        ranked = []

        for candidate in candidates:
            if candidate.type != detected.type.value:
                continue

            score = name_similarity(detected.name, candidate.name)
            if score >= self.min_score:
                ranked.append(ScoredCandidate(element=candidate, score=score))

        ranked.sort(key=lambda c: c.sort_key)
        return ranked

    def best_candidate(
        self, detected: DetectedElement, candidates: list[ExistingElement]
    ) -> ScoredCandidate | None:
        """Return the single best candidate at or above the threshold, or None."""
        ranked = self.rank(detected, candidates)
        return ranked[0] if ranked else None
