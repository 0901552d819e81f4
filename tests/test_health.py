"""Tests for the health endpoint."""

import pytest
from httpx import ASGITransport, AsyncClient

from src.api.app import create_app


@pytest.fixture
async def client():
    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert "version" in data
    assert data["checkingService"] is False


@pytest.mark.asyncio
async def test_root(client):
    resp = await client.get("/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["service"] == "prose-check"


@pytest.mark.asyncio
async def test_api_routes_require_bearer_token(client):
    resp = await client.get("/api/checking/capabilities")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "NO_TOKEN"
