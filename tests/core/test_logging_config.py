"""
Unit Tests for structured logging
"""

import json
import logging
import sys

import pytest

from ruleloop.core.logging_config import (
    JSONFormatter,
    StandardFormatter,
    clear_trace_id,
    get_trace_id,
    set_trace_id,
    setup_logging,
    trace_context,
)


def _record(message: str = "Pass done", exc_info=None, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="ruleloop.core.automation.engine",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def no_trace_id():
    clear_trace_id()
    yield
    clear_trace_id()


@pytest.mark.unit
def test_trace_id_roundtrip():
    assert get_trace_id() is None

    set_trace_id("pass-abc123")
    assert get_trace_id() == "pass-abc123"

    clear_trace_id()
    assert get_trace_id() is None


@pytest.mark.unit
def test_json_formatter_basic_fields():
    output = json.loads(JSONFormatter().format(_record()))

    assert output["level"] == "INFO"
    assert output["logger"] == "ruleloop.core.automation.engine"
    assert output["message"] == "Pass done"
    assert output["timestamp"].endswith("Z")
    assert "trace_id" not in output


@pytest.mark.unit
def test_json_formatter_includes_trace_id_and_extra():
    set_trace_id("pass-42")

    output = json.loads(JSONFormatter().format(_record(rule_id=3, status="completed")))

    assert output["trace_id"] == "pass-42"
    assert output["context"]["rule_id"] == 3
    assert output["context"]["status"] == "completed"


@pytest.mark.unit
def test_json_formatter_serializes_unknown_types():
    from datetime import datetime

    output = json.loads(JSONFormatter().format(_record(started_at=datetime(2026, 1, 1))))

    assert output["context"]["started_at"].startswith("2026-01-01")


@pytest.mark.unit
def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record("failed", exc_info=sys.exc_info())

    output = json.loads(JSONFormatter().format(record))

    assert "RuntimeError: boom" in output["exception"]


@pytest.mark.unit
def test_standard_formatter_appends_trace_id():
    set_trace_id("req-1")

    line = StandardFormatter().format(_record())

    assert "INFO" in line
    assert "Pass done" in line
    assert line.endswith("(trace_id=req-1)")


@pytest.mark.unit
def test_trace_context_restores_previous_id():
    set_trace_id("req-outer")

    with trace_context("pass-inner") as trace_id:
        assert trace_id == "pass-inner"
        assert get_trace_id() == "pass-inner"

    assert get_trace_id() == "req-outer"


@pytest.mark.unit
def test_trace_context_restores_on_error():
    with pytest.raises(RuntimeError):
        with trace_context("pass-1"):
            raise RuntimeError("boom")

    assert get_trace_id() is None


@pytest.mark.unit
def test_setup_logging_quiets_client_libraries(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("JSON_LOGS", raising=False)
    monkeypatch.delenv("LOG_FILE", raising=False)
    root = logging.getLogger()
    previous_handlers, previous_level = list(root.handlers), root.level

    try:
        setup_logging(level="DEBUG", json_logs=True)

        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    finally:
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)
