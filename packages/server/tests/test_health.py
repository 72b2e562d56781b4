"""
Health check endpoint tests.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport

from app.core.errors import register_exception_handlers
from app.main import app


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Health endpoint should return status ok."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_ready_check(client: AsyncClient):
    """Ready endpoint should return status ready."""
    response = await client.get("/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


@pytest.mark.asyncio
async def test_api_root(client: AsyncClient):
    """API v1 root should list search and the mutation routes."""
    response = await client.get("/api/v1/")
    assert response.status_code == 200
    data = response.json()
    assert data["api"] == "v1"
    assert "/search" in data["endpoints"]
    assert "/projects/{projectId}/favorite" in data["endpoints"]


@pytest.mark.asyncio
async def test_security_headers_on_responses(client: AsyncClient):
    response = await client.get("/health")
    assert response.headers["X-Frame-Options"] == "DENY"


@pytest.mark.asyncio
async def test_unknown_route_uses_error_body(client: AsyncClient):
    response = await client.get("/api/v1/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


def test_unexpected_error_uses_error_body():
    broken = FastAPI()
    register_exception_handlers(broken)

    @broken.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    response = TestClient(broken, raise_server_exceptions=False).get("/boom")
    assert response.status_code == 500
    assert response.json() == {"error": "Internal error"}
