"""
Models module - SQLAlchemy database models
"""

from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Import models after Base is defined to avoid circular imports
from .automation_rule import AutomationRule  # noqa: E402
from .automation_execution import AutomationExecution  # noqa: E402
from .knowledge import KnowledgeQuery, KnowledgeArticle  # noqa: E402
from .workflow_execution import WorkflowExecution  # noqa: E402

__all__ = [
    "Base",
    "AutomationRule",
    "AutomationExecution",
    "KnowledgeQuery",
    "KnowledgeArticle",
    "WorkflowExecution",
]
