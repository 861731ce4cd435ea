"""
Sentry error tracking configuration for Ledgerly.

Only server-side failures are reported: 4xx HTTPExceptions and client-facing
LedgerlyErrors (bad input, missing plan, bad webhook signature) are dropped.
The Stripe signature header is scrubbed from request data before sending.

When ``dsn`` is empty (the default), Sentry is completely disabled.
"""

import logging

import sentry_sdk
from fastapi import HTTPException
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from ledgerly.config import AppEnv
from ledgerly.core.exceptions import (
    AuthenticationError,
    FeatureNotAvailableError,
    LedgerlyError,
    PlanLimitExceededError,
    ResourceNotFoundError,
    ValidationError,
    WebhookSignatureError,
)

_CLIENT_ERRORS = (
    AuthenticationError,
    FeatureNotAvailableError,
    PlanLimitExceededError,
    ResourceNotFoundError,
    ValidationError,
    WebhookSignatureError,
)

_SCRUBBED_HEADERS = frozenset({"stripe-signature", "authorization", "cookie"})


def init_sentry(
    dsn: str,
    app_env: AppEnv,
    app_version: str,
    traces_sample_rate: float = 0.1,
) -> None:
    """
    Initialize Sentry SDK for error tracking.

    Args:
        dsn: Sentry DSN. Empty string disables Sentry entirely.
        app_env: Current environment (used as Sentry ``environment``).
        app_version: Application version (used as Sentry ``release``).
        traces_sample_rate: Fraction of transactions to trace (0.0–1.0).
    """
    if not dsn:
        return

    sentry_sdk.init(
        dsn=dsn,
        environment=app_env.value,
        release=f"ledgerly@{app_version}",
        traces_sample_rate=traces_sample_rate,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            StarletteIntegration(transaction_style="endpoint"),
            LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR,
            ),
        ],
        before_send=_filter_events,
        send_default_pii=False,
    )


def _filter_events(event: dict, hint: dict) -> dict | None:
    """
    Filter Sentry events before sending.

    - Drops expected client errors.
    - Tags LedgerlyError subclasses.
    - Removes credential-bearing request headers.
    """
    if "exc_info" in hint:
        _, exc_value, _ = hint["exc_info"]

        if isinstance(exc_value, HTTPException) and exc_value.status_code < 500:
            return None

        if isinstance(exc_value, _CLIENT_ERRORS):
            return None

        if isinstance(exc_value, LedgerlyError):
            event.setdefault("tags", {})
            event["tags"]["error_type"] = type(exc_value).__name__
            if exc_value.details:
                event["extra"] = {**event.get("extra", {}), **exc_value.details}

    headers = event.get("request", {}).get("headers")
    if isinstance(headers, dict):
        for name in list(headers):
            if name.lower() in _SCRUBBED_HEADERS:
                headers[name] = "[Filtered]"

    return event
