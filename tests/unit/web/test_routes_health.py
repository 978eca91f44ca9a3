"""Tests for backbone.web.routes.health."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock
from sqlalchemy.exc import OperationalError

from backbone.db.connection import get_db
from backbone.web.routes import health


@pytest.fixture
def session():
    return AsyncMock()


@pytest.fixture
def client(session):
    test_app = FastAPI()
    test_app.include_router(health.router)

    async def _override():
        yield session

    test_app.dependency_overrides[get_db] = _override
    return TestClient(test_app)


def test_health_ok(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["database"] == "connected"


def test_health_database_down(client, session):
    session.execute.side_effect = OperationalError("SELECT 1", {}, Exception("refused"))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "error"
    assert response.json()["database"] == "disconnected"
