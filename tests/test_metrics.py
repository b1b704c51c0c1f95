import pytest

from conftest import auth_headers, approve_and_launch


@pytest.mark.asyncio
async def test_root(client):
    res = await client.get("/")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_system_metrics(client):
    res = await client.get("/api/metrics")
    assert res.status_code == 200
    body = res.json()
    assert body["database"] == "Connected"
    assert {"cpu", "ram", "disk", "uptime", "db_latency"} <= set(body)


@pytest.mark.asyncio
async def test_health(client):
    res = await client.get("/api/metrics/health")
    assert res.status_code == 200
    assert res.json()["database"] == "Connected"
    assert res.json()["smtp_server"] == "Not Configured"


@pytest.mark.asyncio
async def test_dashboard_stats(client, campus):
    await approve_and_launch(client, campus)

    res = await client.get("/api/metrics/dashboard-stats", headers=auth_headers(campus.admin))
    assert res.status_code == 200
    metrics = res.json()["metrics"]
    assert metrics["users"]["Student"] == 2
    assert metrics["courses"] == 1
    assert metrics["launched_courses"] == 1
    assert metrics["arrangements"]["approved"] == 1
    assert len(res.json()["recent_activity"]) == 3

    res = await client.get("/api/metrics/dashboard-stats", headers=auth_headers(campus.hod))
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_redis_endpoints_without_redis(client, campus):
    admin = auth_headers(campus.admin)

    res = await client.get("/api/metrics/redis-stats", headers=admin)
    assert res.json()["status"] == "Disabled"

    res = await client.post("/api/metrics/clear-cache", headers=admin)
    assert res.status_code == 400
