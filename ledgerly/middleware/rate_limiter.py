"""
Fixed-window rate limiting for the Ledgerly API.

Requests are counted per ``<bucket>:<client-ip>`` inside fixed windows
(not sliding): a burst straddling a window boundary can admit up to twice
``max_requests`` in a short span.

Two interchangeable backends implement ``RateLimiter``:
- InMemoryRateLimiter: process-local map, for single-instance deployments.
  Counts are NOT shared between workers or hosts.
- RedisRateLimiter: shared counters via Redis INCR + PEXPIRE.

The limiter is process-scoped state: ``create_app()`` builds one, stores it
on ``app.state.rate_limiter``, and endpoints receive it through the
``get_rate_limiter`` dependency so tests can swap in a fresh instance.

Architecture: FastAPI dependency injection (Depends pattern),
consistent with auth_middleware.py.
"""

import asyncio
import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, Response, status
from redis.asyncio import Redis
from redis.exceptions import RedisError

from ledgerly.config import RateLimitBackend, Settings

logger = logging.getLogger(__name__)


# ─── Named Limits ────────────────────────────────────────────


@dataclass(frozen=True)
class RateLimitConfig:
    """A logical bucket and its allowance per window."""

    name: str
    max_requests: int
    window_ms: int


RATE_LIMIT_CONFIGS: dict[str, RateLimitConfig] = {
    "standard": RateLimitConfig("standard", max_requests=100, window_ms=60_000),
    "strict": RateLimitConfig("strict", max_requests=10, window_ms=60_000),
    "auth": RateLimitConfig("auth", max_requests=5, window_ms=60_000),
    "write": RateLimitConfig("write", max_requests=30, window_ms=60_000),
}


# ─── Result Dataclass ────────────────────────────────────────


@dataclass
class RateLimitResult:
    """Outcome of a single check, used for the decision and response headers."""

    allowed: bool
    remaining: int
    reset_time: int  # Epoch milliseconds when the current window ends
    retry_after_seconds: int  # 0 when allowed


# ─── Limiter Interface ───────────────────────────────────────


class RateLimiter(ABC):
    """Counts one request against ``key`` and decides whether to admit it."""

    @abstractmethod
    async def check(self, key: str, max_requests: int, window_ms: int) -> RateLimitResult:
        ...

    def sweep(self) -> int:
        """Drop expired state. Returns the number of entries removed."""
        return 0

    async def close(self) -> None:
        """Release backend resources on shutdown."""


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class _Window:
    count: int
    reset_time: int


class InMemoryRateLimiter(RateLimiter):
    """
    Process-local fixed-window counter.

    The map is guarded by a ``threading.Lock`` so it stays consistent even
    when checks run from threadpool workers as well as the event loop.
    Expired windows are reset lazily on access and removed by ``sweep()``,
    which the application lifespan calls on a timer.
    """

    def __init__(self, clock: Callable[[], int] = _now_ms):
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    async def check(self, key: str, max_requests: int, window_ms: int) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now >= window.reset_time:
                window = _Window(count=0, reset_time=now + window_ms)
                self._windows[key] = window

            if window.count >= max_requests:
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_time=window.reset_time,
                    retry_after_seconds=max(1, math.ceil((window.reset_time - now) / 1000)),
                )

            window.count += 1
            return RateLimitResult(
                allowed=True,
                remaining=max_requests - window.count,
                reset_time=window.reset_time,
                retry_after_seconds=0,
            )

    def count_for(self, key: str) -> int:
        """Requests admitted in ``key``'s current window (0 if none/expired)."""
        with self._lock:
            window = self._windows.get(key)
            if window is None or self._clock() >= window.reset_time:
                return 0
            return window.count

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, w in self._windows.items() if now >= w.reset_time]
            for key in expired:
                del self._windows[key]
        if expired:
            logger.debug(f"Rate limiter sweep removed {len(expired)} expired windows")
        return len(expired)

    def __len__(self) -> int:
        return len(self._windows)


class RedisRateLimiter(RateLimiter):
    """
    Fixed-window counter shared through Redis.

    The first INCR in a window sets the key's expiry to the window length;
    the key's remaining TTL gives the reset time. Fails open if Redis is
    unavailable.
    """

    def __init__(self, redis: Redis, prefix: str = "ratelimit"):
        self._redis = redis
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> "RedisRateLimiter":
        return cls(Redis.from_url(url, decode_responses=True))

    @property
    def client(self) -> Redis:
        return self._redis

    async def check(self, key: str, max_requests: int, window_ms: int) -> RateLimitResult:
        redis_key = f"{self._prefix}:{key}"
        now = _now_ms()

        try:
            pipe = self._redis.pipeline()
            pipe.incr(redis_key)
            pipe.pttl(redis_key)
            count, ttl = await pipe.execute()

            # No expiry yet: this INCR opened the window
            if ttl is None or ttl < 0:
                await self._redis.pexpire(redis_key, window_ms)
                ttl = window_ms
        except (ConnectionError, TimeoutError, RedisError, OSError) as e:
            logger.error(f"Redis unavailable for rate limiting: {e}")
            return RateLimitResult(
                allowed=True,
                remaining=max_requests,
                reset_time=now + window_ms,
                retry_after_seconds=0,
            )

        reset_time = now + int(ttl)
        if count > max_requests:
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_time=reset_time,
                retry_after_seconds=max(1, math.ceil(int(ttl) / 1000)),
            )
        return RateLimitResult(
            allowed=True,
            remaining=max_requests - count,
            reset_time=reset_time,
            retry_after_seconds=0,
        )

    async def close(self) -> None:
        await self._redis.aclose()


def build_rate_limiter(settings: Settings) -> RateLimiter:
    """Create the limiter selected by ``RATE_LIMIT_BACKEND``."""
    if settings.rate_limit_backend == RateLimitBackend.REDIS:
        logger.info("Rate limiting backed by Redis")
        return RedisRateLimiter.from_url(settings.redis_url)
    logger.info("Rate limiting backed by process memory (not shared across instances)")
    return InMemoryRateLimiter()


async def sweep_periodically(limiter: RateLimiter, interval_seconds: float) -> None:
    """Run ``limiter.sweep()`` every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        limiter.sweep()


# ─── Client Identification ───────────────────────────────────


def get_client_ip(request: Request) -> str:
    """
    Best-effort client IP: first X-Forwarded-For hop, then X-Real-IP,
    then the socket peer, else "unknown".
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


# ─── FastAPI Dependencies ────────────────────────────────────


def get_rate_limiter(request: Request) -> RateLimiter:
    """FastAPI dependency: the process-wide limiter created by ``create_app()``."""
    return request.app.state.rate_limiter


def rate_limit(config: RateLimitConfig):
    """
    Build a dependency that counts the request against ``config``.

    Usage:
        @router.post("/things", dependencies=[Depends(rate_limit(RATE_LIMIT_CONFIGS["write"]))])

    Raises HTTPException 429 (with Retry-After) once the window is used up.
    """

    async def dependency(
        request: Request,
        response: Response,
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> RateLimitResult:
        key = f"{config.name}:{get_client_ip(request)}"
        result = await limiter.check(key, config.max_requests, config.window_ms)

        if not result.allowed:
            logger.warning(
                f"Rate limit exceeded for {key}: {config.max_requests} per {config.window_ms}ms"
            )
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later.",
                headers={
                    **_rate_limit_headers(config, result),
                    "Retry-After": str(result.retry_after_seconds),
                },
            )

        add_rate_limit_headers(response, config, result)
        return result

    return dependency


# ─── Response Header Helper ─────────────────────────────────


def _rate_limit_headers(config: RateLimitConfig, result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(config.max_requests),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_time // 1000),
    }


def add_rate_limit_headers(
    response: Response, config: RateLimitConfig, result: RateLimitResult
) -> None:
    """Add X-RateLimit-* headers to a response object."""
    for name, value in _rate_limit_headers(config, result).items():
        response.headers[name] = value
