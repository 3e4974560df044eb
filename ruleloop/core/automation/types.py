"""
Types shared by the automation loop.

TriggerType / ActionType: closed sets of values a rule can hold
RuleSnapshot: detached, read-only view of an AutomationRule row for one pass
InvocationEnvelope: event + structured model output, unpacked into an execution record
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class TriggerType(str, Enum):
    NEW_QUERY = "new_query"
    WORKFLOW_START = "workflow_start"
    ERROR_DETECTED = "error_detected"
    SCHEDULE = "schedule"
    COLLABORATION_REQUEST = "collaboration_request"


class ActionType(str, Enum):
    CATEGORIZE = "categorize"
    VALIDATE = "validate"
    DRAFT_RESPONSE = "draft_response"
    ASSIGN_AGENT = "assign_agent"
    CREATE_WORKFLOW = "create_workflow"


class ExecutionStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


def parse_trigger(value: Any) -> Optional[TriggerType]:
    """TriggerType for value, or None when it is not a known trigger"""
    try:
        return TriggerType(value)
    except ValueError:
        return None


def parse_action(value: Any) -> Optional[ActionType]:
    """ActionType for value, or None when it is not a known action"""
    try:
        return ActionType(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class RuleSnapshot:
    """Rule as read at the start of a pass"""
    id: int
    name: str
    trigger_type: str
    action_type: str
    agent_name: Optional[str] = None
    condition: Dict[str, Any] = field(default_factory=dict)
    configuration: Dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    execution_count: int = 0
    last_executed: Optional[datetime] = None

    @classmethod
    def from_model(cls, rule) -> "RuleSnapshot":
        return cls(
            id=rule.id,
            name=rule.name,
            trigger_type=rule.trigger_type,
            action_type=rule.action_type,
            agent_name=rule.agent_name,
            condition=dict(rule.condition or {}),
            configuration=dict(rule.configuration or {}),
            is_active=bool(rule.is_active),
            execution_count=rule.execution_count or 0,
            last_executed=rule.last_executed,
        )


@dataclass
class InvocationEnvelope:
    """
    Triggering event paired with the generation service output.

    Never persisted on its own: trigger becomes AutomationExecution.trigger_data
    and data becomes AutomationExecution.result.
    """
    trigger: Dict[str, Any]
    data: Dict[str, Any]

    @property
    def event_id(self) -> Optional[int]:
        return self.trigger.get("id")
