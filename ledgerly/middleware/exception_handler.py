"""
Global exception handlers for the FastAPI application.

Every error leaves the API in the same envelope, ``{"error": str, ...}``:
1. LedgerlyError subclasses, mapped to status codes by type.
2. HTTPException (auth, rate limits, 404 routes), re-wrapped.
3. Request validation errors, reported as 400 with the first problem.
4. Unhandled Exception, 500 with a unique ``error_id`` for
   customer-support correlation.
"""

import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ledgerly.core.exceptions import (
    AuthenticationError,
    BillingNotConfiguredError,
    FeatureNotAvailableError,
    LedgerlyError,
    PlanLimitExceededError,
    PriceNotConfiguredError,
    ResourceNotFoundError,
    ValidationError,
    WebhookSignatureError,
)

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers on the FastAPI app.

    Called from ``create_app()`` after all middleware and routers
    are registered.
    """

    @app.exception_handler(LedgerlyError)
    async def handle_ledgerly_error(request: Request, exc: LedgerlyError) -> JSONResponse:
        """Map LedgerlyError subclasses to HTTP status codes."""
        status_code = _get_status_code(exc)
        if status_code >= 500:
            logger.error(
                f"{type(exc).__name__}: {exc.message}",
                exc_info=exc,
                extra={"error_type": type(exc).__name__, "path": request.url.path},
            )
        else:
            logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.message}")

        headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
        return JSONResponse(
            status_code=status_code,
            content=_error_body(exc),
            headers=headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Re-wrap framework HTTP errors in the standard envelope."""
        if isinstance(exc.detail, dict):
            content = {"error": str(exc.detail.get("error", "")), **exc.detail}
        else:
            content = {"error": str(exc.detail)}
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed or out-of-range request fields are client errors (400)."""
        errors = exc.errors()
        message = _describe_validation_error(errors[0]) if errors else "Invalid request"
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(Exception)
    async def handle_unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions: log, return 500 with error_id."""
        error_id = uuid.uuid4().hex[:8]
        logger.exception(
            f"Unhandled exception (error_id={error_id})",
            extra={"error_id": error_id, "path": request.url.path},
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "error_id": error_id,
            },
        )


def _get_status_code(exc: LedgerlyError) -> int:
    """Map exception type to HTTP status code."""
    if isinstance(exc, (ValidationError, PriceNotConfiguredError, WebhookSignatureError)):
        return 400
    if isinstance(exc, AuthenticationError):
        return 401
    if isinstance(exc, (FeatureNotAvailableError, PlanLimitExceededError)):
        return 403
    if isinstance(exc, ResourceNotFoundError):
        return 404
    if isinstance(exc, BillingNotConfiguredError):
        return 503
    # BillingProviderError and the LedgerlyError base fall through
    return 500


def _error_body(exc: LedgerlyError) -> dict:
    body: dict = {"error": exc.message or "Internal server error"}
    if isinstance(exc, FeatureNotAvailableError):
        body["upgradeRequired"] = exc.upgrade_required
    elif isinstance(exc, PlanLimitExceededError):
        body["upgradeRequired"] = exc.upgrade_required
        body["limit"] = exc.limit
        body["currentCount"] = exc.current_count
    return body


def _describe_validation_error(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    message = error.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message
