"""Backbone web route modules.

Each module exports a ``router`` (APIRouter instance) included by
``backbone.web.app``.

Usage:
    from backbone.web.routes import revision_matches
    app.include_router(revision_matches.router)
"""

from backbone.web.routes import health, revision_matches, scripts

__all__ = ["health", "revision_matches", "scripts"]
