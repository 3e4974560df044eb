"""
Dispatch / Matching

Explicit lookup table from (trigger, action) to the invoker that handles it.
Any pair missing from the table (assign_agent, create_workflow, triggers
without an event source) resolves to None and the rule is skipped.
"""

from functools import partial
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from .invokers import ActionInvokers
from .types import ActionType, InvocationEnvelope, RuleSnapshot, TriggerType, parse_action, parse_trigger

Invoker = Callable[[dict, RuleSnapshot], Awaitable[InvocationEnvelope]]

DISPATCH_TABLE: Dict[Tuple[TriggerType, ActionType], Callable[..., Awaitable[InvocationEnvelope]]] = {
    (TriggerType.NEW_QUERY, ActionType.CATEGORIZE): ActionInvokers.categorize,
    (TriggerType.NEW_QUERY, ActionType.DRAFT_RESPONSE): ActionInvokers.draft_response,
    (TriggerType.WORKFLOW_START, ActionType.VALIDATE): ActionInvokers.validate,
}


def supported_combinations() -> List[Tuple[str, str]]:
    """(trigger_type, action_type) pairs the loop can execute"""
    return [(trigger.value, action.value) for trigger, action in DISPATCH_TABLE]


def is_supported(trigger_type: str, action_type: str) -> bool:
    trigger, action = parse_trigger(trigger_type), parse_action(action_type)
    if trigger is None or action is None:
        return False
    return (trigger, action) in DISPATCH_TABLE


def resolve(invokers: ActionInvokers, rule: RuleSnapshot) -> Optional[Invoker]:
    """
    Bound invoker for the rule, or None if its trigger/action pair is not handled.
    """
    trigger, action = parse_trigger(rule.trigger_type), parse_action(rule.action_type)
    if trigger is None or action is None:
        return None

    handler = DISPATCH_TABLE.get((trigger, action))
    if handler is None:
        return None
    return partial(handler, invokers)
