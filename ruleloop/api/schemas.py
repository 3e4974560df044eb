"""
Pydantic schemas for API request/response validation
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import datetime

from ..core.automation.types import ActionType, TriggerType


# ============================================================================
# RULE SCHEMAS
# ============================================================================

class RuleCreate(BaseModel):
    """Schema for creating an automation rule"""
    name: str = Field(..., min_length=1, max_length=255, description="Rule name")
    trigger_type: TriggerType = Field(..., description="Event kind that fires the rule")
    action_type: ActionType = Field(..., description="Action run for each matching event")
    agent_name: Optional[str] = Field(None, max_length=255, description="Agent label (informational)")
    condition: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "always", "value": ""},
        description="Stored with the rule; not evaluated by the loop"
    )
    configuration: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Categorize new queries",
                "trigger_type": "new_query",
                "action_type": "categorize",
                "agent_name": "triage",
                "condition": {"type": "always", "value": ""},
                "configuration": {},
                "is_active": True
            }
        }


class RuleUpdate(BaseModel):
    """Schema for a partial rule update (only sent fields change)"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    trigger_type: Optional[TriggerType] = None
    action_type: Optional[ActionType] = None
    agent_name: Optional[str] = Field(None, max_length=255)
    condition: Optional[Dict[str, Any]] = None
    configuration: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


class RuleResponse(BaseModel):
    """Schema for rule response"""
    id: int
    name: str
    trigger_type: str
    action_type: str
    agent_name: Optional[str]
    condition: Optional[Dict[str, Any]]
    configuration: Optional[Dict[str, Any]]
    is_active: bool
    execution_count: int
    last_executed: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    is_supported: bool = Field(..., description="True if the loop can run this trigger/action pair")
    success_rate: Optional[float] = Field(None, description="Completed executions in percent, null without history")

    class Config:
        from_attributes = True


class RuleListResponse(BaseModel):
    """Schema for listing rules"""
    rules: List[RuleResponse]
    total: int


# ============================================================================
# EXECUTION SCHEMAS
# ============================================================================

class ExecutionResponse(BaseModel):
    """Schema for an automation execution record"""
    id: int
    rule_id: int
    rule_name: str
    trigger_type: Optional[str] = None
    trigger_data: Optional[Dict[str, Any]]
    trigger_event_id: Optional[int]
    status: str
    result: Optional[Dict[str, Any]]
    error_message: Optional[str]
    execution_time_ms: float
    created_at: datetime

    class Config:
        from_attributes = True


class ExecutionListResponse(BaseModel):
    """Schema for listing executions"""
    executions: List[ExecutionResponse]
    total: int


# ============================================================================
# PASS SCHEMAS
# ============================================================================

class RuleOutcomeResponse(BaseModel):
    rule_id: int
    rule_name: str
    trigger_type: Optional[str] = None
    completed: int
    failed: int
    skipped_reason: Optional[str]


class PassResultResponse(BaseModel):
    """Summary of one automation pass"""
    pass_id: str
    started_at: datetime
    skipped: bool
    aborted: bool
    error: Optional[str]
    rules_processed: int
    executions_completed: int
    executions_failed: int
    duration_ms: float
    outcomes: List[RuleOutcomeResponse]


# ============================================================================
# GENERIC SCHEMAS
# ============================================================================

class MessageResponse(BaseModel):
    """Generic message response"""
    message: str
