"""Database layer for Backbone with async SQLAlchemy."""

from backbone.db.connection import close_db, get_db, get_session, init_db
from backbone.db.models import (
    ApprovalModel,
    Base,
    ElementModel,
    OptionModel,
    RevisionMatchModel,
    ScriptModel,
)

__all__ = [
    "Base",
    "ScriptModel",
    "ElementModel",
    "OptionModel",
    "ApprovalModel",
    "RevisionMatchModel",
    "get_session",
    "get_db",
    "init_db",
    "close_db",
]
