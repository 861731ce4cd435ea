"""
Structured logging configuration for Ledgerly.

structlog renders every stdlib ``logging.getLogger(__name__)`` record through a
ProcessorFormatter on the root handler: colored console lines in development,
JSON lines everywhere else.

Billing code handles Stripe secrets, webhook bodies and signature headers.
``redact_sensitive_fields`` strips those from every log entry before it is
rendered, whether they arrive as ``extra=`` fields, bound contextvars, or
inline in the message.
"""

import logging
import re
import sys

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from ledgerly.config import AppEnv

# Keys dropped from any log entry
SENSITIVE_KEYS = frozenset({
    "payload",
    "raw_body",
    "signature",
    "stripe_signature",
    "authorization",
    "cookie",
    "webhook_secret",
    "api_key",
})

# Stripe credentials that must not appear in message text
_SECRET_PATTERN = re.compile(r"\b(?:whsec|sk_live|sk_test|rk_live|rk_test)_[A-Za-z0-9]+")

REDACTED = "[REDACTED]"

# Libraries that log full request lines at INFO
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "stripe", "httpx")


def redact_sensitive_fields(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """structlog processor: drop sensitive keys and mask Stripe secrets."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        del event_dict[key]

    message = event_dict.get("event")
    if isinstance(message, str):
        event_dict["event"] = _SECRET_PATTERN.sub(REDACTED, message)
    return event_dict


def _add_environment(app_env: AppEnv) -> Processor:
    def processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("env", app_env.value)
        return event_dict

    return processor


def setup_logging(
    app_env: AppEnv,
    log_level: str = "INFO",
    log_format: str = "auto",
) -> None:
    """
    Configure structured logging for the application.

    Args:
        app_env: Current environment; tagged onto every entry.
        log_level: Root logger level (DEBUG, INFO, WARNING, ERROR).
        log_format: ``"json"``, ``"console"``, or ``"auto"``
                    (auto = console in dev, json otherwise).
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.ExtraAdder(),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _add_environment(app_env),
        structlog.stdlib.PositionalArgumentsFormatter(),
        redact_sensitive_fields,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer: Processor
    if _should_use_json(app_env, log_format):
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _should_use_json(app_env: AppEnv, log_format: str) -> bool:
    if log_format in ("json", "console"):
        return log_format == "json"
    return app_env != AppEnv.DEVELOPMENT
