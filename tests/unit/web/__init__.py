"""Unit tests for Backbone web route modules.

Each route module has a matching test file. Routes are exercised through
FastAPI's TestClient with the database session and service calls patched.
"""
