"""Shared helpers for Backbone web routes.

Usage:
    from backbone.web.dependencies import to_http_error

    try:
        ...
    except ReconciliationError as exc:
        raise to_http_error(exc) from exc
"""

from __future__ import annotations

from fastapi import HTTPException, status

from backbone.reconciliation.errors import ReconciliationError

# Error code -> HTTP status for rejected operations
ERROR_STATUS = {
    "script_not_found": status.HTTP_404_NOT_FOUND,
    "script_not_reconciling": status.HTTP_400_BAD_REQUEST,
    "unknown_match": status.HTTP_400_BAD_REQUEST,
    "incomplete_decision_set": status.HTTP_400_BAD_REQUEST,
    "invalid_decision_for_status": status.HTTP_400_BAD_REQUEST,
    "conflicting_map_decision": status.HTTP_400_BAD_REQUEST,
    "invalid_script_state": status.HTTP_400_BAD_REQUEST,
    "already_resolved": status.HTTP_409_CONFLICT,
    "persistence_failure": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "revision_processing_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def to_http_error(exc: ReconciliationError) -> HTTPException:
    """Translate a domain error into ``{"detail": {"error", "message"}}``."""
    return HTTPException(
        status_code=ERROR_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST),
        detail={"error": exc.code, "message": exc.message},
    )
