"""
Health endpoint tests - TDD: fast feedback on API availability.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from reader_api.config import Settings
from reader_api.main import create_app


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    """GET /api/v1/health returns 200 and status ok."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"


@pytest.mark.asyncio
async def test_ready(client: AsyncClient):
    """GET /api/v1/health/ready returns 200 when the pool answers SELECT 1."""
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready", "database": "sqlite"}


@pytest.mark.asyncio
async def test_ready_reports_503_without_database(tmp_path):
    """Readiness fails closed when the database cannot be opened."""
    unreachable = tmp_path / "missing-dir" / "reader.db"
    app = create_app(Settings(database_url=f"sqlite+aiosqlite:///{unreachable}"))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/v1/health/ready")
    await app.state.db.disconnect()
    assert response.status_code == 503
    assert response.json()["status"] == "unavailable"


@pytest.mark.asyncio
async def test_metrics_exposes_query_counters(client: AsyncClient):
    """GET /metrics serves the data layer counters in Prometheus text format."""
    await client.get("/api/v1/health/ready")
    response = await client.get("/metrics/")
    assert response.status_code == 200
    assert "db_queries_total" in response.text
    assert "db_transactions_total" in response.text
