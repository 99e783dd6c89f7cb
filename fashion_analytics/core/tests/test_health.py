"""Tests for health check endpoints."""

from fashion_analytics.core import health
from fashion_analytics.core.exceptions import IngestError


async def test_health_check_returns_ok(client):
    """Health endpoint should return status ok."""
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_readiness_reports_loaded_store(client, sample_store, monkeypatch):
    """Readiness should list table sizes when the store loads."""
    monkeypatch.setattr(health, "get_record_store", lambda: sample_store)

    response = await client.get("/health/ready")

    data = response.json()
    assert data["status"] == "ok"
    assert data["record_store"] == "loaded"
    assert data["row_counts"] == {"customers": 4, "products": 4, "sales": 5, "sale_items": 6}


async def test_readiness_degraded_on_empty_store(client, make_store, monkeypatch):
    """An empty store is loaded but degraded."""
    empty = make_store()
    monkeypatch.setattr(health, "get_record_store", lambda: empty)

    response = await client.get("/health/ready")

    assert response.json()["status"] == "degraded"


async def test_readiness_unhealthy_when_staging_missing(client, monkeypatch):
    """Readiness should report an unavailable store instead of failing."""

    def _fail():
        raise IngestError("Staging directory not found: /nowhere")

    monkeypatch.setattr(health, "get_record_store", _fail)

    response = await client.get("/health/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "unhealthy"
    assert data["record_store"] == "unavailable"
