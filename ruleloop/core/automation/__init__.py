"""
Automation module - the rule execution loop.

Exports:
    - AutomationEngine, PassResult, RuleOutcome (one pass at a time)
    - AutomationScheduler, SchedulerHandle (periodic driver)
    - RuleStore, EventSource, ExecutionRecorder (entity store accessors)
    - ActionInvokers and the dispatch table
    - build_engine() to wire everything from a session factory
"""

from typing import Optional

from ...database import SessionFactory
from ..generation.generation_service import GenerationService
from .dispatch import DISPATCH_TABLE, is_supported, resolve, supported_combinations
from .engine import AutomationEngine, PassResult, RuleOutcome
from .event_source import DEFAULT_EVENT_LIMIT, EventSource
from .invokers import ActionInvokers
from .recorder import ExecutionRecorder
from .rule_store import RuleStore
from .scheduler import AutomationScheduler, SchedulerHandle
from .types import ActionType, ExecutionStatus, InvocationEnvelope, RuleSnapshot, TriggerType


def build_engine(
    session_factory: SessionFactory,
    generation: GenerationService,
    event_limit: Optional[int] = None
) -> AutomationEngine:
    """Wire the accessors, invokers and engine around one session factory"""
    event_source = EventSource(session_factory, limit=event_limit or DEFAULT_EVENT_LIMIT)
    return AutomationEngine(
        rule_store=RuleStore(session_factory),
        event_source=event_source,
        recorder=ExecutionRecorder(session_factory),
        invokers=ActionInvokers(generation, event_source),
    )


__all__ = [
    "ActionInvokers",
    "ActionType",
    "AutomationEngine",
    "AutomationScheduler",
    "DISPATCH_TABLE",
    "EventSource",
    "ExecutionRecorder",
    "ExecutionStatus",
    "InvocationEnvelope",
    "PassResult",
    "RuleOutcome",
    "RuleSnapshot",
    "RuleStore",
    "SchedulerHandle",
    "TriggerType",
    "build_engine",
    "is_supported",
    "resolve",
    "supported_combinations",
]
