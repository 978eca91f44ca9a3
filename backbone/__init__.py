"""Backbone - script revision reconciliation for production collaboration."""

__version__ = "1.0.0"
