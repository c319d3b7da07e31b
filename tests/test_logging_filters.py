"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from psicohub.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    set_request_id,
)


@pytest.fixture
def log_stream() -> tuple[logging.Logger, StringIO]:
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
    return logger, stream


def test_sensitive_filter_redacts_secrets(log_stream) -> None:
    logger, stream = log_stream

    logger.info(
        "test_event",
        extra={
            "redis_token": "upstash-secret-123",
            "password": "hunter2",
            "client_ip": "203.0.113.7",
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()

    assert "upstash-secret-123" not in output
    assert "hunter2" not in output
    assert "203.0.113.7" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_personal_data_is_masked_not_dropped(log_stream) -> None:
    logger, stream = log_stream

    logger.info(
        "patient_event",
        extra={
            "cpf": "123.456.789-00",
            "email": "usuario@dominio.com",
            "patient_name": "João Silva",
        },
    )

    record = json.loads(stream.getvalue())

    assert record["cpf"] == "123.***.***-00"
    assert record["email"] == "u***o@dominio.com"
    assert record["patient_name"] == "J*** S***"


def test_sensitive_filter_allows_safe_fields(log_stream) -> None:
    logger, stream = log_stream

    logger.info(
        "rate_limit.allowed",
        extra={
            "bucket": "auth",
            "key_hash": "abc123",
            "limit": 5,
            "remaining": 4,
        },
    )

    record = json.loads(stream.getvalue())

    assert record["message"] == "rate_limit.allowed"
    assert record["bucket"] == "auth"
    assert record["remaining"] == 4
    assert "[REDACTED]" not in stream.getvalue()


def test_sensitive_filter_redacts_nested_dicts(log_stream) -> None:
    logger, stream = log_stream

    logger.info(
        "nested_event",
        extra={
            "headers": {
                "x-forwarded-for": "203.0.113.7",
                "authorization": "Bearer abc",
                "user-agent": "pytest",
            },
            "patient": {"phone": "(11) 98765-4321"},
        },
    )

    output = stream.getvalue()

    assert "203.0.113.7" not in output
    assert "Bearer abc" not in output
    assert "pytest" in output
    assert "(11) *****-4321" in output


def test_request_id_is_attached_from_context(log_stream) -> None:
    logger, stream = log_stream

    set_request_id("req-123")
    try:
        logger.info("with_request_id")
    finally:
        clear_request_id()

    assert json.loads(stream.getvalue())["request_id"] == "req-123"
