"""
Tests for the Celery automation task and beat configuration

Tasks run eagerly through .apply(), so no broker is needed.
"""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock, Mock, patch

import pytest

from ruleloop.config import get_settings
from ruleloop.core.automation import PassResult
from ruleloop.workers.celery_app import AUTOMATION_INTERVAL_SECONDS, celery_app
from ruleloop.workers.tasks import process_automations_task, run_pass_and_close


def fake_engine(result: PassResult) -> Mock:
    engine = Mock()
    engine.run_pass = AsyncMock(return_value=result)
    engine.invokers.generation.aclose = AsyncMock()
    return engine


# ============================================================================
# CONFIGURATION
# ============================================================================

@pytest.mark.unit
def test_beat_schedules_one_pass_per_interval():
    entry = celery_app.conf.beat_schedule["process-automations"]

    assert entry["task"] == "process_automations_task"
    assert entry["schedule"] == AUTOMATION_INTERVAL_SECONDS
    assert entry["options"]["queue"] == "automations"
    assert entry["options"]["expires"] == AUTOMATION_INTERVAL_SECONDS


@pytest.mark.unit
def test_single_consumer_without_redelivery():
    assert celery_app.conf.worker_concurrency == 1
    assert celery_app.conf.task_acks_late is False
    assert celery_app.conf.task_routes["process_automations_task"]["queue"] == "automations"


@pytest.mark.unit
def test_broker_comes_from_settings():
    redis_url = get_settings().redis_url

    assert celery_app.conf.broker_url == redis_url
    assert celery_app.conf.result_backend == redis_url


@pytest.mark.unit
def test_task_is_registered_without_retries():
    assert "process_automations_task" in celery_app.tasks
    assert process_automations_task.max_retries == 0


# ============================================================================
# TASK EXECUTION
# ============================================================================

@pytest.mark.unit
def test_task_runs_one_pass_and_returns_summary():
    result = PassResult(
        pass_id="abc123",
        started_at=datetime(2026, 10, 18, 9, 0),
        rules_processed=2,
        executions_completed=3,
        executions_failed=1,
    )
    engine = fake_engine(result)

    with patch("ruleloop.workers.tasks.get_automation_engine", return_value=engine):
        summary = process_automations_task.apply().get()

    engine.run_pass.assert_awaited_once()
    engine.invokers.generation.aclose.assert_awaited_once()
    assert summary["pass_id"] == "abc123"
    assert summary["started_at"] == "2026-10-18T09:00:00"
    assert summary["executions_completed"] == 3
    assert summary["executions_failed"] == 1


@pytest.mark.unit
def test_aborted_pass_is_returned_not_raised():
    result = PassResult(
        pass_id="def456",
        started_at=datetime(2026, 10, 18, 9, 0),
        aborted=True,
        error="database is down",
    )

    with patch("ruleloop.workers.tasks.get_automation_engine", return_value=fake_engine(result)):
        outcome = process_automations_task.apply()

    assert outcome.successful()
    assert outcome.get()["aborted"] is True
    assert outcome.get()["error"] == "database is down"


@pytest.mark.integration
def test_task_against_real_engine(session_factory, mock_generation, make_rule, make_query):
    from ruleloop.core.automation import build_engine

    rule_id = make_rule()
    make_query()
    engine = build_engine(session_factory, mock_generation)

    with patch("ruleloop.workers.tasks.get_automation_engine", return_value=engine):
        summary = process_automations_task.apply().get()

    assert summary["executions_completed"] == 1
    assert summary["outcomes"][0]["rule_id"] == rule_id
    mock_generation.aclose.assert_awaited_once()


@pytest.mark.unit
def test_provider_client_is_closed_when_pass_raises():
    engine = fake_engine(None)
    engine.run_pass.side_effect = RuntimeError("event loop torn down")

    with pytest.raises(RuntimeError):
        asyncio.run(run_pass_and_close(engine))

    engine.invokers.generation.aclose.assert_awaited_once()
