"""
Database connection and session management for ruleloop.

Provides:
- get_engine(): SQLAlchemy engine built from DATABASE_URL on first use
- get_session_factory(): sessionmaker bound to that engine
- session_scope(factory): Context manager for one session from a factory
"""

from contextlib import contextmanager
from typing import Callable, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from .config import get_settings
from .core.exceptions import ConfigurationError

SessionFactory = Callable[[], Session]

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def get_engine() -> Engine:
    """
    Create (once) and return the SQLAlchemy engine.

    Raises:
        ConfigurationError: If DATABASE_URL is not set
    """
    global _engine
    if _engine is None:
        database_url = get_settings().database_url
        if not database_url:
            raise ConfigurationError(
                "DATABASE_URL environment variable not set. "
                "Please configure it in .env file.",
                setting="DATABASE_URL"
            )
        # pool_pre_ping=True ensures connections are valid before using them
        _engine = create_engine(database_url, pool_pre_ping=True, echo=False)
    return _engine


def get_session_factory() -> sessionmaker:
    """Return the process-wide session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _session_factory


@contextmanager
def session_scope(factory: SessionFactory) -> Generator[Session, None, None]:
    """
    Context manager for a session from an explicit factory.

    Usage:
        with session_scope(factory) as db:
            rule = db.get(AutomationRule, rule_id)
            rule.is_active = False
            db.commit()

    The session is closed when exiting the context,
    and rolled back if an exception occurs.
    """
    db = factory()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
