"""
Runtime configuration for ruleloop.

All settings come from environment variables (optionally a .env file).
get_settings() reads them once per call so tests can monkeypatch the env.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .core.exceptions import ConfigurationError

load_dotenv()

SCHEDULER_MODES = ("inprocess", "celery", "off")


@dataclass(frozen=True)
class Settings:
    """Snapshot of the environment used by the API, workers and the loop"""
    database_url: Optional[str]
    redis_url: Optional[str]
    automation_model: str
    automation_interval_seconds: float
    automation_event_limit: int
    automation_scheduler: str
    log_level: str
    json_logs: bool
    log_file: Optional[str]


def normalize_database_url(url: Optional[str]) -> Optional[str]:
    """Fix Railway-style URLs (postgres:// -> postgresql://)"""
    if url and url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def _read_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'", setting=name)
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}", setting=name)
    return value


def _read_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'", setting=name)
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}", setting=name)
    return value


def get_settings() -> Settings:
    """
    Build Settings from the current environment.

    Environment Variables:
        DATABASE_URL: SQLAlchemy URL of the entity store
        REDIS_URL: Celery broker and result backend
        AUTOMATION_MODEL: Model name or alias for the generation service (default: gpt-4o-mini)
        AUTOMATION_INTERVAL_SECONDS: Seconds between passes (default: 15)
        AUTOMATION_EVENT_LIMIT: Max candidate events per rule per pass (default: 5)
        AUTOMATION_SCHEDULER: inprocess | celery | off (default: off)
        LOG_LEVEL, JSON_LOGS, LOG_FILE: see logging_config.setup_logging

    Raises:
        ConfigurationError: If a value cannot be parsed
    """
    scheduler = os.getenv("AUTOMATION_SCHEDULER", "off").lower()
    if scheduler not in SCHEDULER_MODES:
        raise ConfigurationError(
            f"AUTOMATION_SCHEDULER must be one of {SCHEDULER_MODES}, got '{scheduler}'",
            setting="AUTOMATION_SCHEDULER"
        )

    return Settings(
        database_url=normalize_database_url(os.getenv("DATABASE_URL")),
        redis_url=os.getenv("REDIS_URL"),
        automation_model=os.getenv("AUTOMATION_MODEL", "gpt-4o-mini"),
        automation_interval_seconds=_read_float("AUTOMATION_INTERVAL_SECONDS", 15.0),
        automation_event_limit=_read_int("AUTOMATION_EVENT_LIMIT", 5),
        automation_scheduler=scheduler,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        json_logs=os.getenv("JSON_LOGS", "false").lower() == "true",
        log_file=os.getenv("LOG_FILE") or None,
    )
