"""
Structured logging for ruleloop.

Two output formats share one correlation id (the "trace id"):
- JSON lines for production (JSON_LOGS=true): timestamp, level, logger,
  message, trace_id, exception and any `extra={...}` fields under "context"
- A single human-readable line for development

The trace id lives in a ContextVar, so it follows an asyncio task across
awaits. The API middleware sets the request id; AutomationEngine wraps every
pass in trace_context("pass-<id>"), which also restores the caller's id
when a pass runs inside a request (POST /automations/run).
"""

import logging
import json
import sys
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional
from contextvars import ContextVar
import os

trace_id_var: ContextVar[Optional[str]] = ContextVar('trace_id', default=None)

# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_ATTRS = frozenset([
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'message', 'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info', 'taskName'
])

# Client libraries that log every HTTP call / SQL statement at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "sqlalchemy.engine", "celery.beat")


class JSONFormatter(logging.Formatter):
    """One JSON object per line; unknown values are stringified"""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        trace_id = trace_id_var.get()
        if trace_id:
            log_data["trace_id"] = trace_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        context = {key: value for key, value in vars(record).items() if key not in _RESERVED_ATTRS}
        if context:
            log_data["context"] = context

        return json.dumps(log_data, ensure_ascii=True, default=str)


class StandardFormatter(logging.Formatter):
    """
    Development format:

        [2026-10-18 09:00:00] INFO     - ruleloop.core.automation.engine - Pass 3f2a: 2 active rule(s) (trace_id=pass-3f2a)
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")
        line = f"[{timestamp}] {record.levelname:8s} - {record.name} - {record.getMessage()}"

        trace_id = trace_id_var.get()
        if trace_id:
            line += f" (trace_id={trace_id})"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


def setup_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: Optional[str] = None
) -> None:
    """
    Configure the root logger for ruleloop processes (API, Celery worker/beat).

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: JSON lines if True, human-readable lines otherwise
        log_file: Also write to this file

    Environment Variables:
        LOG_LEVEL, JSON_LOGS ("true"/"false"), LOG_FILE override the arguments.
    """
    level = os.getenv("LOG_LEVEL", level).upper()
    json_logs = os.getenv("JSON_LOGS", "true" if json_logs else "false").lower() == "true"
    log_file = os.getenv("LOG_FILE", log_file)

    numeric_level = getattr(logging, level, logging.INFO)
    formatter = JSONFormatter() if json_logs else StandardFormatter()

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={
            "level": level,
            "json_logs": json_logs,
            "log_file": log_file or "none"
        }
    )


def set_trace_id(trace_id: str) -> None:
    """Set the trace id for the current async context (one per HTTP request)"""
    trace_id_var.set(trace_id)


def clear_trace_id() -> None:
    trace_id_var.set(None)


def get_trace_id() -> Optional[str]:
    return trace_id_var.get()


@contextmanager
def trace_context(trace_id: str) -> Iterator[str]:
    """Use trace_id inside the block, then restore whatever was set before"""
    token = trace_id_var.set(trace_id)
    try:
        yield trace_id
    finally:
        trace_id_var.reset(token)
