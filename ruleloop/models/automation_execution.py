"""
AutomationExecution Model
One record per rule invocation attempt
"""

from sqlalchemy import Column, Integer, String, Text, JSON, DateTime, Float, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from . import Base


class AutomationExecution(Base):
    """
    AutomationExecution Model

    Written once by the ExecutionRecorder and never updated.
    """
    __tablename__ = "automation_executions"

    id = Column(Integer, primary_key=True, index=True)
    rule_id = Column(
        Integer,
        ForeignKey("automation_rules.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    rule_name = Column(String(255), nullable=False)

    # Trigger the rule had when this attempt ran; scopes trigger_event_id
    trigger_type = Column(String(50), nullable=True, index=True)

    # Snapshot of the event that fired the rule (null when the failure
    # happened before any event was involved)
    trigger_data = Column(JSON, nullable=True)
    trigger_event_id = Column(Integer, nullable=True, index=True)

    # Status: completed, failed
    status = Column(String(50), nullable=False, index=True)

    # Structured output of the generation service (completed only)
    # Example: {"category": "billing", "confidence": 0.92, "reasoning": "..."}
    result = Column(JSON, nullable=True)

    error_message = Column(Text, nullable=True)
    execution_time_ms = Column(Float, nullable=False, default=0.0)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    rule = relationship("AutomationRule", back_populates="executions")

    def to_dict(self):
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "trigger_type": self.trigger_type,
            "trigger_data": self.trigger_data,
            "trigger_event_id": self.trigger_event_id,
            "status": self.status,
            "result": self.result,
            "error_message": self.error_message,
            "execution_time_ms": self.execution_time_ms,
            "created_at": self.created_at,
        }

    def __repr__(self):
        return f"<AutomationExecution(id={self.id}, rule_id={self.rule_id}, status='{self.status}')>"
