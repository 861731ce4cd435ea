"""
Health check with dependency probes.

Checks:
- Database: ``SELECT 1`` via async session
- Redis: ``PING``, only when Redis backs the rate limiter

Returns 200 with ``"healthy"`` or ``"degraded"`` status, never 503.
"""

import logging
import time
from datetime import UTC, datetime

from redis.asyncio import Redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def check_database(session: AsyncSession) -> dict:
    """Probe database connectivity."""
    try:
        start = time.monotonic()
        await session.execute(text("SELECT 1"))
        latency = round((time.monotonic() - start) * 1000, 1)
        return {"status": "up", "latency_ms": latency}
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return {"status": "down", "error": str(e)}


async def check_redis(redis: Redis) -> dict:
    """Probe Redis connectivity."""
    try:
        start = time.monotonic()
        await redis.ping()
        latency = round((time.monotonic() - start) * 1000, 1)
        return {"status": "up", "latency_ms": latency}
    except Exception as e:
        logger.warning(f"Redis health check failed: {e}")
        return {"status": "down", "error": str(e)}


async def get_health_status(
    app_name: str,
    app_version: str,
    app_env: str,
    billing_configured: bool,
    db_session: AsyncSession | None = None,
    redis_client: Redis | None = None,
) -> dict:
    """
    Build complete health status response.

    Overall status is ``"healthy"`` if all configured probes pass,
    ``"degraded"`` if any fail. Billing configuration is reported but
    does not affect the overall status.
    """
    components: dict[str, dict] = {}

    if db_session is not None:
        components["database"] = await check_database(db_session)
    if redis_client is not None:
        components["redis"] = await check_redis(redis_client)

    all_up = all(c["status"] == "up" for c in components.values())
    overall = "healthy" if (not components or all_up) else "degraded"

    return {
        "status": overall,
        "app": app_name,
        "version": app_version,
        "environment": app_env,
        "billing": "configured" if billing_configured else "not_configured",
        "timestamp": datetime.now(UTC).isoformat(),
        "components": components,
    }
