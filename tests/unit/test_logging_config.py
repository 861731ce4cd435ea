"""Tests for ledgerly.core.logging_config — structured logging setup."""

import io
import json
import logging

import structlog

from ledgerly.config import AppEnv
from ledgerly.core.logging_config import (
    REDACTED,
    _should_use_json,
    redact_sensitive_fields,
    setup_logging,
)


def _capture_log_output(app_env: AppEnv, log_format: str = "auto", log_level: str = "INFO"):
    """Helper: set up logging and capture output from a stdlib logger."""
    setup_logging(app_env=app_env, log_level=log_level, log_format=log_format)

    stream = io.StringIO()
    for h in logging.getLogger().handlers:
        h.stream = stream
    return stream


def _is_json(text: str) -> bool:
    try:
        json.loads(text.strip())
        return True
    except (json.JSONDecodeError, ValueError):
        return False


class TestSetupLoggingRenderer:
    """Verify correct renderer is selected based on env and format."""

    def test_development_auto_uses_console(self):
        stream = _capture_log_output(AppEnv.DEVELOPMENT, "auto")
        logging.getLogger("test.dev.auto").info("hello dev")
        output = stream.getvalue()
        assert "hello dev" in output
        assert not _is_json(output)

    def test_production_auto_uses_json(self):
        stream = _capture_log_output(AppEnv.PRODUCTION, "auto")
        logging.getLogger("test.prod.auto").info("hello prod")
        parsed = json.loads(stream.getvalue().strip())
        assert parsed["event"] == "hello prod"
        assert parsed["level"] == "info"

    def test_explicit_console_overrides_prod(self):
        stream = _capture_log_output(AppEnv.PRODUCTION, "console")
        logging.getLogger("test.prod.console").info("forced console")
        assert not _is_json(stream.getvalue())

    def test_should_use_json_matrix(self):
        assert _should_use_json(AppEnv.DEVELOPMENT, "auto") is False
        assert _should_use_json(AppEnv.STAGING, "auto") is True
        assert _should_use_json(AppEnv.DEVELOPMENT, "json") is True
        assert _should_use_json(AppEnv.PRODUCTION, "console") is False


class TestContextBinding:
    def test_bound_request_id_appears_in_json(self):
        stream = _capture_log_output(AppEnv.PRODUCTION, "json")
        structlog.contextvars.bind_contextvars(request_id="abc12345")
        try:
            logging.getLogger("ledgerly.services.billing_service").info("Processed evt_1")
        finally:
            structlog.contextvars.clear_contextvars()
        parsed = json.loads(stream.getvalue().strip())
        assert parsed["request_id"] == "abc12345"
        assert parsed["logger"] == "ledgerly.services.billing_service"
        assert parsed["env"] == "production"


class TestSetupLoggingLevel:
    def test_sets_root_level_warning(self):
        setup_logging(app_env=AppEnv.DEVELOPMENT, log_level="WARNING")
        assert logging.getLogger().level == logging.WARNING

    def test_default_level_is_info(self):
        setup_logging(app_env=AppEnv.DEVELOPMENT)
        assert logging.getLogger().level == logging.INFO


class TestNoisyLoggers:
    def test_third_party_loggers_quieted(self):
        setup_logging(app_env=AppEnv.DEVELOPMENT)
        for name in ("uvicorn.access", "sqlalchemy.engine", "stripe", "httpx"):
            assert logging.getLogger(name).level == logging.WARNING


class TestRedaction:
    def test_processor_drops_sensitive_keys(self):
        event = {
            "event": "webhook received",
            "payload": b'{"id": "evt_1"}',
            "stripe_signature": "t=1,v1=abc",
            "event_id": "evt_1",
        }
        result = redact_sensitive_fields(None, "info", event)
        assert result == {"event": "webhook received", "event_id": "evt_1"}

    def test_processor_masks_stripe_secrets_in_message(self):
        result = redact_sensitive_fields(None, "error", {"event": "bad key sk_test_abc123 / whsec_xyz"})
        assert result["event"] == f"bad key {REDACTED} / {REDACTED}"

    def test_extra_payload_never_rendered(self):
        stream = _capture_log_output(AppEnv.PRODUCTION, "json")
        logging.getLogger("ledgerly.api.routes.stripe").warning(
            "Stripe webhook rejected",
            extra={"payload": "secret body", "signature": "t=1,v1=deadbeef", "event_id": "evt_9"},
        )
        output = stream.getvalue()
        parsed = json.loads(output.strip())
        assert parsed["event_id"] == "evt_9"
        assert "payload" not in parsed
        assert "signature" not in parsed
        assert "deadbeef" not in output

    def test_bound_authorization_is_dropped(self):
        stream = _capture_log_output(AppEnv.PRODUCTION, "json")
        structlog.contextvars.bind_contextvars(authorization="Bearer token")
        try:
            logging.getLogger("test.redaction").info("request")
        finally:
            structlog.contextvars.clear_contextvars()
        assert "authorization" not in json.loads(stream.getvalue().strip())
