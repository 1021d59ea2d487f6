"""
Tests for structured logging processors.
"""

from shared import logging as dashboard_logging
from shared.logging import (
    MAX_FIELD_LENGTH,
    add_correlation_context,
    add_service_context,
    clear_context,
    set_request_id,
    set_rule_id,
    truncate_long_values,
)


def test_correlation_context():
    set_request_id("req-1")
    set_rule_id("rule-9")
    try:
        event = add_correlation_context(None, "info", {"event": "Rule loaded"})
    finally:
        clear_context()

    assert event["request_id"] == "req-1"
    assert event["rule_id"] == "rule-9"
    assert "route" not in event


def test_correlation_context_keeps_explicit_values():
    set_rule_id("rule-9")
    try:
        event = add_correlation_context(None, "info", {"rule_id": "other"})
    finally:
        clear_context()

    assert event["rule_id"] == "other"


def test_set_request_id_generates_one():
    try:
        request_id = set_request_id()
    finally:
        clear_context()

    assert len(request_id) == 36


def test_service_context_from_logger_name(monkeypatch):
    monkeypatch.setattr(dashboard_logging, "_service_name", "fallback")

    assert add_service_context(None, "info", {"logger": "dashboard.rule_builder"})["service"] == "dashboard"
    assert add_service_context(None, "info", {"logger": "uvicorn"})["service"] == "fallback"


def test_long_values_are_truncated():
    drl = "x" * (MAX_FIELD_LENGTH + 10)

    event = truncate_long_values(None, "info", {"drl": drl, "name": "short", "size": 10})

    assert event["drl"].startswith("x" * MAX_FIELD_LENGTH)
    assert event["drl"].endswith(f"({MAX_FIELD_LENGTH + 10} chars)")
    assert event["name"] == "short"
    assert event["size"] == 10
