"""HTTP interface for Backbone (FastAPI)."""
