"""Errors raised by revision processing and the reconciliation resolver.

Every resolver error means the whole submission was rejected and no state
changed. The route layer maps ``code`` onto an HTTP status.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID


class ReconciliationError(Exception):
    """Base class for rejected reconciliation operations."""

    code = "reconciliation_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def _ids(ids: Iterable[UUID]) -> str:
    return ", ".join(sorted(str(i) for i in ids))


class ScriptNotFound(ReconciliationError):
    code = "script_not_found"

    def __init__(self, script_id: UUID):
        super().__init__(f"Script {script_id} not found")
        self.script_id = script_id


class ScriptNotReconciling(ReconciliationError):
    code = "script_not_reconciling"

    def __init__(self, script_id: UUID, status: str):
        super().__init__(f"Script {script_id} is {status}, not RECONCILING")
        self.script_id = script_id
        self.status = status


class UnknownMatch(ReconciliationError):
    code = "unknown_match"

    def __init__(self, match_ids: Iterable[UUID]):
        self.match_ids = set(match_ids)
        super().__init__(f"Unknown matchIds: {_ids(self.match_ids)}")


class IncompleteDecisionSet(ReconciliationError):
    code = "incomplete_decision_set"

    def __init__(self, missing: Iterable[UUID] = (), duplicated: Iterable[UUID] = ()):
        self.missing = set(missing)
        self.duplicated = set(duplicated)
        parts = []
        if self.missing:
            parts.append(f"no decision for {_ids(self.missing)}")
        if self.duplicated:
            parts.append(f"more than one decision for {_ids(self.duplicated)}")
        super().__init__(
            "Every unresolved match needs exactly one decision: " + "; ".join(parts)
        )


class InvalidDecisionForStatus(ReconciliationError):
    code = "invalid_decision_for_status"

    def __init__(self, match_id: UUID, decision: str, match_status: str, allowed: Iterable[str]):
        self.match_id = match_id
        self.decision = decision
        self.match_status = match_status
        super().__init__(
            f"Decision '{decision}' is not valid for {match_status} match {match_id} "
            f"(allowed: {', '.join(sorted(allowed))})"
        )


class ConflictingMapDecision(ReconciliationError):
    code = "conflicting_map_decision"

    def __init__(self, old_element_id: UUID, match_ids: Iterable[UUID]):
        self.old_element_id = old_element_id
        self.match_ids = set(match_ids)
        super().__init__(
            f"Element {old_element_id} is the map target of more than one match: "
            f"{_ids(self.match_ids)}"
        )


class AlreadyResolved(ReconciliationError):
    code = "already_resolved"

    def __init__(self, match_ids: Iterable[UUID]):
        self.match_ids = set(match_ids)
        super().__init__(f"Matches already resolved: {_ids(self.match_ids)}")


class PersistenceFailure(ReconciliationError):
    """Commit failed; state is unchanged and the identical submission may be retried."""

    code = "persistence_failure"


class InvalidScriptState(ReconciliationError):
    """Script lifecycle transition attempted from the wrong status."""

    code = "invalid_script_state"


class RevisionProcessingError(ReconciliationError):
    """Classifying or persisting a new revision failed; the script is marked ERROR."""

    code = "revision_processing_error"
