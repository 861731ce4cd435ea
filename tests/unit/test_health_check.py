"""Tests for ledgerly.core.health and the /health endpoint."""

from unittest.mock import AsyncMock, MagicMock

from ledgerly.core.health import check_database, check_redis, get_health_status


def _session(ok: bool = True):
    session = AsyncMock()
    if ok:
        session.execute = AsyncMock(return_value=MagicMock())
    else:
        session.execute = AsyncMock(side_effect=ConnectionError("db down"))
    return session


def _redis(ok: bool = True):
    redis = AsyncMock()
    if ok:
        redis.ping = AsyncMock(return_value=True)
    else:
        redis.ping = AsyncMock(side_effect=ConnectionError("redis unavailable"))
    return redis


class TestProbes:
    async def test_database_up(self):
        result = await check_database(_session())
        assert result["status"] == "up"
        assert result["latency_ms"] >= 0

    async def test_database_down(self):
        result = await check_database(_session(ok=False))
        assert result["status"] == "down"
        assert "db down" in result["error"]

    async def test_redis_down(self):
        result = await check_redis(_redis(ok=False))
        assert result["status"] == "down"
        assert "redis unavailable" in result["error"]


class TestGetHealthStatus:
    async def test_healthy_when_all_probes_pass(self):
        result = await get_health_status(
            app_name="Ledgerly",
            app_version="0.1.0",
            app_env="development",
            billing_configured=True,
            db_session=_session(),
            redis_client=_redis(),
        )
        assert result["status"] == "healthy"
        assert result["billing"] == "configured"
        assert result["components"]["redis"]["status"] == "up"

    async def test_degraded_when_db_down(self):
        result = await get_health_status(
            app_name="Ledgerly",
            app_version="0.1.0",
            app_env="production",
            billing_configured=False,
            db_session=_session(ok=False),
        )
        assert result["status"] == "degraded"
        assert result["billing"] == "not_configured"
        assert "redis" not in result["components"]

    async def test_includes_metadata(self):
        result = await get_health_status(
            app_name="Ledgerly",
            app_version="0.1.0",
            app_env="production",
            billing_configured=False,
        )
        assert result["status"] == "healthy"
        assert result["app"] == "Ledgerly"
        assert result["environment"] == "production"
        assert "timestamp" in result


class TestHealthEndpoint:
    async def test_reports_database_up_without_auth(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["components"]["database"]["status"] == "up"
        assert "X-Request-ID" in response.headers
