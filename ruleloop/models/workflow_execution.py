"""
WorkflowExecution Model
Workflow runs tracked by the platform; read by the workflow_start trigger
"""

from sqlalchemy import Column, Integer, String, Text, DateTime
from datetime import datetime
from . import Base


class WorkflowExecution(Base):
    """
    WorkflowExecution Model

    Status: pending, running, completed, failed
    """
    __tablename__ = "workflow_executions"

    id = Column(Integer, primary_key=True, index=True)
    workflow_name = Column(String(255), nullable=False)
    status = Column(String(50), nullable=False, default="pending", index=True)

    # Raw input the run started with (free text or serialized JSON)
    initial_input = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "workflow_name": self.workflow_name,
            "status": self.status,
            "initial_input": self.initial_input,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<WorkflowExecution(id={self.id}, workflow='{self.workflow_name}', status='{self.status}')>"
