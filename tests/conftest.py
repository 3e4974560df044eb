"""
Pytest fixtures for ruleloop tests

This module provides shared fixtures for all tests:
- In-memory SQLite session factory (shared across sessions and threads)
- Seed helpers for rules, knowledge queries, articles and workflow runs
- Mock generation service
- Circuit breaker reset between tests
"""

import os

# Celery refuses to configure itself without a broker URL
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

import pytest  # noqa: E402
from datetime import datetime, timedelta  # noqa: E402
from typing import Any, Dict  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from ruleloop.models import Base  # noqa: E402
from ruleloop.models.automation_rule import AutomationRule  # noqa: E402
from ruleloop.models.knowledge import KnowledgeArticle, KnowledgeQuery  # noqa: E402
from ruleloop.models.workflow_execution import WorkflowExecution  # noqa: E402
from ruleloop.core.circuit_breaker import generation_circuit_breaker  # noqa: E402
from ruleloop.core.generation.generation_service import GenerationService  # noqa: E402


# ============================================================================
# DATABASE FIXTURES
# ============================================================================

@pytest.fixture(scope="function")
def session_factory():
    """
    Session factory over a fresh in-memory SQLite database.

    StaticPool keeps a single connection so every session (and the
    TestClient thread) sees the same database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ============================================================================
# SEED HELPERS
# ============================================================================

@pytest.fixture
def make_rule(session_factory):
    """Insert an AutomationRule and return its id"""

    def _make_rule(
        name: str = "Categorize queries",
        trigger_type: str = "new_query",
        action_type: str = "categorize",
        is_active: bool = True,
        **fields: Any
    ) -> int:
        with session_factory() as db:
            rule = AutomationRule(
                name=name,
                trigger_type=trigger_type,
                action_type=action_type,
                is_active=is_active,
                **fields
            )
            db.add(rule)
            db.commit()
            return rule.id

    return _make_rule


@pytest.fixture
def make_query(session_factory):
    """Insert a KnowledgeQuery and return its id; age_minutes orders them"""

    def _make_query(
        query: str = "How do I reset my password?",
        results_found: bool = False,
        age_minutes: int = 0
    ) -> int:
        with session_factory() as db:
            row = KnowledgeQuery(
                query=query,
                results_found=results_found,
                created_at=datetime.utcnow() - timedelta(minutes=age_minutes),
            )
            db.add(row)
            db.commit()
            return row.id

    return _make_query


@pytest.fixture
def make_article(session_factory):

    def _make_article(title: str, content: str = "", relevance_score: float = 0.5) -> int:
        with session_factory() as db:
            row = KnowledgeArticle(title=title, content=content, relevance_score=relevance_score)
            db.add(row)
            db.commit()
            return row.id

    return _make_article


@pytest.fixture
def make_workflow_run(session_factory):

    def _make_workflow_run(
        workflow_name: str = "Invoice Processing",
        status: str = "running",
        initial_input: str = '{"invoice_id": "INV-1"}',
        age_minutes: int = 0
    ) -> int:
        with session_factory() as db:
            row = WorkflowExecution(
                workflow_name=workflow_name,
                status=status,
                initial_input=initial_input,
                created_at=datetime.utcnow() - timedelta(minutes=age_minutes),
            )
            db.add(row)
            db.commit()
            return row.id

    return _make_workflow_run


# ============================================================================
# GENERATION FIXTURES
# ============================================================================

def default_generation_output(prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
    """Minimal schema-conforming answer for each action"""
    required = schema.get("required", [])
    if "category" in required:
        return {"category": "support", "confidence": 0.9, "reasoning": "Account access question"}
    if "draft_response" in required:
        return {"draft_response": "Use the reset link on the login page.", "confidence": 0.8}
    if "is_valid" in required:
        return {"is_valid": True, "issues": []}
    return {}


@pytest.fixture
def mock_generation():
    """
    Mock generation service returning a valid answer for every action.
    Override mock_generation.invoke.side_effect to simulate failures.
    """
    mock = AsyncMock(spec=GenerationService)

    async def invoke_side_effect(prompt, output_schema):
        return default_generation_output(prompt, output_schema)

    mock.invoke.side_effect = invoke_side_effect
    return mock


@pytest.fixture(autouse=True)
def reset_generation_circuit_breaker():
    """The process-wide breaker must not leak state between tests"""
    generation_circuit_breaker.reset()
    yield
    generation_circuit_breaker.reset()
