"""Revision matching: type-blocked candidates, fuzzy ranking, classification."""

from backbone.matching.candidate_generator import CandidateGenerator, partition_by_type
from backbone.matching.classifier import MatchClassifier, classify_detections
from backbone.matching.fuzzy_ranker import FuzzyRanker, name_similarity
from backbone.matching.models import (
    ClassificationReport,
    ExactLink,
    ExistingElement,
    FuzzyCandidate,
    ScoredCandidate,
)

__all__ = [
    "CandidateGenerator",
    "ClassificationReport",
    "ExactLink",
    "ExistingElement",
    "FuzzyCandidate",
    "FuzzyRanker",
    "MatchClassifier",
    "ScoredCandidate",
    "classify_detections",
    "name_similarity",
    "partition_by_type",
]
