"""
Unit Tests for RuleStore
"""

from datetime import datetime
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from ruleloop.core.automation.rule_store import RuleStore
from ruleloop.core.automation.types import ActionType, RuleSnapshot, TriggerType
from ruleloop.core.exceptions import RuleNotFoundError, RuleStoreError
from ruleloop.models.automation_execution import AutomationExecution


@pytest.fixture
def store(session_factory):
    return RuleStore(session_factory)


def broken_factory():
    session = Mock()
    session.execute.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))
    return lambda: session


# ============================================================================
# LOOP OPERATIONS
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_active_returns_only_active_rules_in_id_order(store, make_rule):
    first = make_rule(name="first")
    make_rule(name="paused", is_active=False)
    third = make_rule(name="third", trigger_type="workflow_start", action_type="validate")

    rules = await store.list_active()

    assert [rule.id for rule in rules] == [first, third]
    assert all(isinstance(rule, RuleSnapshot) for rule in rules)
    assert rules[1].trigger_type == "workflow_start"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_active_empty(store):
    assert await store.list_active() == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_active_wraps_database_errors():
    store = RuleStore(broken_factory())

    with pytest.raises(RuleStoreError, match="database is locked"):
        await store.list_active()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_record_run_increments_count_and_sets_timestamp(store, make_rule):
    rule_id = make_rule(execution_count=4)
    executed_at = datetime(2026, 10, 18, 12, 0, 0)

    await store.record_run(rule_id, executed_at)

    rule = await store.get(rule_id)
    assert rule["execution_count"] == 5
    assert rule["last_executed"] == executed_at


@pytest.mark.unit
@pytest.mark.asyncio
async def test_record_run_leaves_other_fields_alone(store, make_rule):
    rule_id = make_rule(name="unchanged", configuration={"tone": "formal"})

    await store.record_run(rule_id, datetime(2026, 1, 1))

    rule = await store.get(rule_id)
    assert rule["name"] == "unchanged"
    assert rule["configuration"] == {"tone": "formal"}
    assert rule["is_active"] is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_record_run_unknown_rule(store):
    with pytest.raises(RuleNotFoundError):
        await store.record_run(999, datetime.utcnow())


# ============================================================================
# MANAGEMENT OPERATIONS
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_rule_with_defaults(store):
    rule = await store.create({
        "name": "Draft answers",
        "trigger_type": TriggerType.NEW_QUERY,
        "action_type": ActionType.DRAFT_RESPONSE,
    })

    assert rule["id"] is not None
    assert rule["trigger_type"] == "new_query"
    assert rule["action_type"] == "draft_response"
    assert rule["condition"] == {"type": "always", "value": ""}
    assert rule["configuration"] == {}
    assert rule["is_active"] is True
    assert rule["execution_count"] == 0
    assert rule["last_executed"] is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_rejects_bookkeeping_fields(store):
    with pytest.raises(ValueError, match="execution_count"):
        await store.create({
            "name": "x", "trigger_type": "new_query", "action_type": "categorize",
            "execution_count": 10,
        })


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_is_partial(store, make_rule):
    rule_id = make_rule(name="before", agent_name="triage")

    rule = await store.update(rule_id, {"name": "after"})

    assert rule["name"] == "after"
    assert rule["agent_name"] == "triage"
    assert rule["action_type"] == "categorize"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_unknown_rule(store):
    with pytest.raises(RuleNotFoundError):
        await store.update(42, {"name": "ghost"})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_toggle_flips_is_active(store, make_rule):
    rule_id = make_rule()

    assert (await store.toggle(rule_id))["is_active"] is False
    assert (await store.toggle(rule_id))["is_active"] is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_rules_most_recently_updated_first(store, make_rule):
    older = make_rule(name="older")
    newer = make_rule(name="newer")

    await store.update(older, {"agent_name": "touched"})
    rules = await store.list_rules()

    assert [rule["id"] for rule in rules] == [older, newer]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_removes_rule_and_history(store, make_rule, db_session):
    rule_id = make_rule()
    db_session.add(AutomationExecution(rule_id=rule_id, rule_name="r", status="completed"))
    db_session.commit()

    await store.delete(rule_id)

    with pytest.raises(RuleNotFoundError):
        await store.get(rule_id)
    assert db_session.query(AutomationExecution).count() == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_unknown_rule(store):
    with pytest.raises(RuleNotFoundError):
        await store.delete(7)
