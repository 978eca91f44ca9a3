"""Core infrastructure (logging)."""
