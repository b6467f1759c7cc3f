"""Tests for redaction and JSON formatting of logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from app.core.config import LogSettings, settings
from app.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    configure_logging,
    redact,
    set_request_id,
)


@pytest.fixture
def capture():
    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    yield logger, stream

    logger.handlers.clear()
    clear_request_id()


def test_redacts_api_keys(capture):
    logger, stream = capture

    logger.info(
        "auth_event",
        extra={
            "api_key": "sk-secret-123",
            "x-api-key": "another-secret",
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()
    assert "sk-secret-123" not in output
    assert "another-secret" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_redacts_client_addresses(capture):
    logger, stream = capture

    logger.warning(
        "rate_limit.exceeded",
        extra={"client_address": "198.51.100.23", "headers": {"X-Forwarded-For": "203.0.113.5"}},
    )

    output = stream.getvalue()
    assert "198.51.100.23" not in output
    assert "203.0.113.5" not in output


def test_safe_fields_pass_through(capture):
    logger, stream = capture

    logger.info(
        "rate_limit.allowed",
        extra={"key_hash": "abc123", "route": "/v1/ai-search", "limit": 3, "remaining": 2},
    )

    data = json.loads(stream.getvalue())
    assert data["message"] == "rate_limit.allowed"
    assert data["level"] == "info"
    assert data["route"] == "/v1/ai-search"
    assert data["limit"] == 3
    assert data["remaining"] == 2
    assert "[REDACTED]" not in stream.getvalue()


def test_request_id_attached_from_context(capture):
    logger, stream = capture
    set_request_id("req-xyz")

    logger.info("correlated")

    assert json.loads(stream.getvalue())["request_id"] == "req-xyz"


def test_redact_nested_structures():
    value = {
        "headers": {"Authorization": "Bearer t", "user-agent": "pytest"},
        "items": [{"token": "x"}, {"count": 1}],
    }

    assert redact(value) == {
        "headers": {"Authorization": "[REDACTED]", "user-agent": "pytest"},
        "items": [{"token": "[REDACTED]"}, {"count": 1}],
    }


@pytest.fixture
def root_logger():
    logger = logging.getLogger()
    handlers = list(logger.handlers)
    level = logger.level

    yield logger

    logger.handlers[:] = handlers
    logger.setLevel(level)


def test_configured_level_applies_without_debug(root_logger, monkeypatch):
    monkeypatch.setattr(settings.app, "debug", False)

    configure_logging(LogSettings(level="WARNING"))

    assert root_logger.level == logging.WARNING


def test_debug_mode_forces_debug_level(root_logger, monkeypatch):
    monkeypatch.setattr(settings.app, "debug", True)

    configure_logging(LogSettings(level="WARNING"))

    assert root_logger.level == logging.DEBUG
