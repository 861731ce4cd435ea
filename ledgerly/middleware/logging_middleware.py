"""
Request/response logging middleware.

Binds a short ``request_id`` to structlog's contextvars so every log line
emitted while handling the request carries it, then logs one summary line
per request (method, path, status, duration, client).
"""

import logging
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("ledgerly.api")

_QUIET_PATHS = frozenset({"/health"})


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs every HTTP request and echoes the request id as ``X-Request-ID``."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:8]

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.monotonic()
        try:
            response = await call_next(request)
        finally:
            duration_ms = round((time.monotonic() - start_time) * 1000, 1)

        if request.url.path not in _QUIET_PATHS:
            logger.info(
                f"{request.method} {request.url.path} "
                f"→ {response.status_code} "
                f"({duration_ms}ms) "
                f"[{request.client.host if request.client else 'unknown'}]"
            )

        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        response.headers["X-Request-ID"] = request_id

        structlog.contextvars.clear_contextvars()
        return response
