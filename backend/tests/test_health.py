"""Tests for the health endpoint."""
import pytest
from httpx import AsyncClient, ASGITransport

from expenseflow.main import app


@pytest.mark.asyncio
async def test_health_returns_200():
    """GET /health should return HTTP 200 with status ok."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_responses_carry_request_id():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        generated = await client.get("/health")
        echoed = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert generated.headers.get("X-Request-ID")
    assert echoed.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_unknown_route_uses_error_shape():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}
