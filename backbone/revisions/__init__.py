"""Script revision lifecycle and processing."""

from backbone.revisions.lifecycle import (
    confirm_script_review,
    create_revision,
    create_script,
    list_versions,
)
from backbone.revisions.processor import (
    RevisionProcessor,
    process_initial_script,
    process_revision,
    process_uploaded_script,
)

__all__ = [
    "RevisionProcessor",
    "confirm_script_review",
    "create_revision",
    "create_script",
    "list_versions",
    "process_initial_script",
    "process_revision",
    "process_uploaded_script",
]
