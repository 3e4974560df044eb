"""
Unit Tests for ExecutionRecorder
"""

import asyncio
import time
from datetime import datetime
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from ruleloop.core.automation.recorder import ExecutionRecorder
from ruleloop.core.automation.types import InvocationEnvelope, RuleSnapshot
from ruleloop.core.exceptions import RecorderError


@pytest.fixture
def recorder(session_factory):
    return ExecutionRecorder(session_factory)


@pytest.fixture
def rule(make_rule):
    rule_id = make_rule(name="Categorize queries")
    return RuleSnapshot(id=rule_id, name="Categorize queries", trigger_type="new_query", action_type="categorize")


# ============================================================================
# WRITING RECORDS
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_record_success_unpacks_envelope(recorder, rule):
    envelope = InvocationEnvelope(
        trigger={"id": 11, "query": "refund?", "created_at": datetime(2026, 10, 18, 8, 0)},
        data={"category": "billing", "confidence": 0.9},
    )

    record = await recorder.record_success(rule, envelope, elapsed_ms=123.456)

    assert record["status"] == "completed"
    assert record["rule_id"] == rule.id
    assert record["rule_name"] == "Categorize queries"
    assert record["trigger_type"] == "new_query"
    assert record["trigger_event_id"] == 11
    assert record["trigger_data"]["created_at"] == "2026-10-18T08:00:00"
    assert record["result"] == {"category": "billing", "confidence": 0.9}
    assert record["error_message"] is None
    assert record["execution_time_ms"] == 123.46


@pytest.mark.unit
@pytest.mark.asyncio
async def test_record_failure_without_event(recorder, rule):
    record = await recorder.record_failure(rule, "database is locked", elapsed_ms=5.0)

    assert record["status"] == "failed"
    assert record["error_message"] == "database is locked"
    assert record["trigger_data"] is None
    assert record["trigger_event_id"] is None
    assert record["result"] is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_record_failure_with_event(recorder, rule):
    record = await recorder.record_failure(rule, "timeout", 1.0, trigger_data={"id": 3, "query": "?"})

    assert record["trigger_event_id"] == 3
    assert record["trigger_data"] == {"id": 3, "query": "?"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_negative_elapsed_time_is_clamped(recorder, rule):
    record = await recorder.record_failure(rule, "clock skew", elapsed_ms=-3.0)

    assert record["execution_time_ms"] == 0.0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_write_errors_raise_recorder_error(rule):
    session = Mock()
    session.commit.side_effect = OperationalError("INSERT", {}, Exception("disk full"))
    recorder = ExecutionRecorder(lambda: session)

    with pytest.raises(RecorderError, match="disk full"):
        await recorder.record_failure(rule, "boom", 1.0)


# ============================================================================
# READING HISTORY
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_handled_event_ids_counts_only_completed(recorder, rule):
    await recorder.record_success(rule, InvocationEnvelope(trigger={"id": 1}, data={}), 1.0)
    await recorder.record_failure(rule, "boom", 1.0, trigger_data={"id": 2})

    handled = await recorder.handled_event_ids(rule.id, "new_query", [1, 2, 3, None])

    assert handled == {1}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_handled_event_ids_is_scoped_to_rule(recorder, rule, make_rule):
    other = RuleSnapshot(id=make_rule(name="other"), name="other", trigger_type="new_query", action_type="draft_response")
    await recorder.record_success(other, InvocationEnvelope(trigger={"id": 1}, data={}), 1.0)

    assert await recorder.handled_event_ids(rule.id, "new_query", [1]) == set()
    assert await recorder.handled_event_ids(rule.id, "new_query", []) == set()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_handled_event_ids_is_scoped_to_trigger_type(recorder, rule):
    await recorder.record_success(rule, InvocationEnvelope(trigger={"id": 1}, data={}), 1.0)

    assert await recorder.handled_event_ids(rule.id, "new_query", [1]) == {1}
    assert await recorder.handled_event_ids(rule.id, "workflow_start", [1]) == set()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_executions_filters(recorder, rule):
    await recorder.record_success(rule, InvocationEnvelope(trigger={"id": 1}, data={}), 1.0)
    await recorder.record_failure(rule, "boom", 1.0)
    await recorder.record_failure(rule, "boom again", 1.0)

    assert len(await recorder.list_executions()) == 3
    assert len(await recorder.list_executions(rule_id=rule.id, status="failed")) == 2
    assert len(await recorder.list_executions(limit=1)) == 1
    assert await recorder.list_executions(rule_id=rule.id + 100) == []

    newest = (await recorder.list_executions())[0]
    assert newest["error_message"] == "boom again"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_success_rates(recorder, rule, make_rule):
    idle_id = make_rule(name="idle")
    for _ in range(3):
        await recorder.record_success(rule, InvocationEnvelope(trigger={"id": 1}, data={}), 1.0)
    await recorder.record_failure(rule, "boom", 1.0)

    rates = await recorder.success_rates()

    assert rates == {rule.id: 75.0}
    assert idle_id not in rates


# ============================================================================
# EVENT LOOP
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_slow_database_does_not_block_event_loop(rule):
    result = Mock()
    result.scalars.return_value.all.return_value = []

    def slow_execute(statement):
        time.sleep(0.3)
        return result

    session = Mock()
    session.execute.side_effect = slow_execute
    recorder = ExecutionRecorder(lambda: session)
    ticks = []

    async def heartbeat():
        while True:
            ticks.append(time.monotonic())
            await asyncio.sleep(0.02)

    beat = asyncio.create_task(heartbeat())
    try:
        assert await recorder.list_executions(rule_id=rule.id) == []
    finally:
        beat.cancel()

    assert len(ticks) > 5
