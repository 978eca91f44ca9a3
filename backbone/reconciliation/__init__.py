"""Reconciliation store queries and the decision resolver."""

from backbone.reconciliation.errors import (
    AlreadyResolved,
    ConflictingMapDecision,
    IncompleteDecisionSet,
    InvalidDecisionForStatus,
    InvalidScriptState,
    PersistenceFailure,
    ReconciliationError,
    RevisionProcessingError,
    ScriptNotFound,
    ScriptNotReconciling,
    UnknownMatch,
)
from backbone.reconciliation.models import OldElementSummary, ReconciliationRecord
from backbone.reconciliation.repository import (
    count_unresolved,
    fetch_revision_matches,
    fetch_unresolved_records,
)
from backbone.reconciliation.service import ResolutionSummary, resolve_revision_matches

__all__ = [
    "AlreadyResolved",
    "ConflictingMapDecision",
    "IncompleteDecisionSet",
    "InvalidDecisionForStatus",
    "InvalidScriptState",
    "OldElementSummary",
    "PersistenceFailure",
    "ReconciliationError",
    "ReconciliationRecord",
    "ResolutionSummary",
    "RevisionProcessingError",
    "ScriptNotFound",
    "ScriptNotReconciling",
    "UnknownMatch",
    "count_unresolved",
    "fetch_revision_matches",
    "fetch_unresolved_records",
    "resolve_revision_matches",
]
