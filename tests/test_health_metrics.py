import pytest

import alumnet.api.routers.health as health_router

pytestmark = pytest.mark.asyncio


def _fixed(value):
    async def _probe():
        return value
    return _probe


async def test_liveness(client):
    r = await client.get("/health/liveness")
    assert r.json() == {"alive": True}


async def test_health_reports_degraded_dependency(client, monkeypatch):
    monkeypatch.setattr(health_router, "db_health", _fixed(True))
    monkeypatch.setattr(health_router, "redis_health", _fixed(False))
    r = await client.get("/health")
    assert r.json() == {"status": "degraded", "dependencies": {"postgres": True, "redis": False}}

    r = await client.get("/health/readiness")
    assert r.json()["ready"] is False


async def test_metrics_count_otp_issuance(client):
    await client.post("/api/auth/send-otp", json={"email": "m@x.com"})
    r = await client.get("/metrics")
    assert r.status_code == 200
    assert "otp_issued_total" in r.text
    assert "http_requests_total" in r.text


async def test_request_id_is_echoed(client):
    r = await client.get("/health/liveness", headers={"X-Request-ID": "abc123"})
    assert r.headers["X-Request-ID"] == "abc123"
