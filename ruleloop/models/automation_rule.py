"""
AutomationRule Model
Stored pairing of a trigger type with the action to run when it matches
"""

from sqlalchemy import Column, Integer, String, JSON, DateTime, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime
from . import Base


def _default_condition():
    return {"type": "always", "value": ""}


class AutomationRule(Base):
    """
    AutomationRule Model

    Created and edited by people through the API. The loop only ever
    bumps execution_count and last_executed.
    """
    __tablename__ = "automation_rules"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)

    # new_query, workflow_start, error_detected, schedule, collaboration_request
    trigger_type = Column(String(50), nullable=False, index=True)

    # categorize, validate, draft_response, assign_agent, create_workflow
    action_type = Column(String(50), nullable=False)

    agent_name = Column(String(255), nullable=True)

    # {"type": "always", "value": ""}
    condition = Column(JSON, nullable=False, default=_default_condition)
    configuration = Column(JSON, nullable=False, default=dict)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    execution_count = Column(Integer, nullable=False, default=0)
    last_executed = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    executions = relationship(
        "AutomationExecution",
        back_populates="rule",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "trigger_type": self.trigger_type,
            "action_type": self.action_type,
            "agent_name": self.agent_name,
            "condition": self.condition,
            "configuration": self.configuration,
            "is_active": self.is_active,
            "execution_count": self.execution_count or 0,
            "last_executed": self.last_executed,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self):
        return (
            f"<AutomationRule(id={self.id}, name='{self.name}', "
            f"trigger='{self.trigger_type}', action='{self.action_type}')>"
        )
