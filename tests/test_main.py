"""
Tests for the assembled application.

Runs requests through the ASGI app with dependency overrides.
"""

from collections.abc import AsyncIterator
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from studyflow.api.dependencies import UserIdentity, get_current_user, get_progression_service
from studyflow.db.session import get_db
from studyflow.main import app
from studyflow.services.progression_service import ProgressionService


@pytest.fixture
async def client(
    service: ProgressionService, user: UserIdentity, db_session: AsyncMock
) -> AsyncIterator[AsyncClient]:
    """HTTP client with auth, service and database overridden."""

    async def _db():
        yield db_session

    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_progression_service] = lambda: service
    app.dependency_overrides[get_db] = _db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


class TestApp:
    """End-to-end requests against the app."""

    async def test_root(self, client: AsyncClient):
        """Root reports the service name."""
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "StudyFlow Progression API"

    async def test_metrics(self, client: AsyncClient):
        """Prometheus metrics are exposed."""
        await client.get("/")
        response = await client.get("/metrics")
        assert response.status_code == 200
        assert "studyflow_http_requests_total" in response.text

    async def test_health(self, client: AsyncClient):
        """Health check with a working database."""
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] == "connected"

    async def test_profile(self, client: AsyncClient):
        """Authenticated profile read."""
        response = await client.get("/v1/profile")
        assert response.status_code == 200
        body = response.json()
        assert body["level"] == 4
        assert body["progress"]["next_level_xp"] == 1600

    async def test_session(self, client: AsyncClient):
        """Session completion over HTTP."""
        response = await client.post("/v1/sessions", json={"duration_minutes": 25})
        assert response.status_code == 200
        assert response.json()["xp_awarded"] == 300

    async def test_validation_error(self, client: AsyncClient):
        """Bad bodies get a sanitized 422."""
        response = await client.post("/v1/sessions", json={"duration_minutes": -5})
        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["body", "duration_minutes"]

    async def test_requires_auth(self):
        """Without overrides, a missing token is a 401."""
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.get("/v1/profile")
        assert response.status_code == 401
