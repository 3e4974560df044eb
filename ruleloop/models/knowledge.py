"""
Knowledge Models
Queries asked against the knowledge base and the articles that answer them
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, Float
from datetime import datetime
from . import Base


class KnowledgeQuery(Base):
    """
    A question that reached the knowledge base.

    results_found=False marks it as unresolved, which is what the
    new_query trigger watches for.
    """
    __tablename__ = "knowledge_queries"

    id = Column(Integer, primary_key=True, index=True)
    query = Column(Text, nullable=False)
    results_found = Column(Boolean, nullable=False, default=False, index=True)

    # Written by the categorize action
    satisfaction = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "query": self.query,
            "results_found": self.results_found,
            "satisfaction": self.satisfaction,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<KnowledgeQuery(id={self.id}, results_found={self.results_found})>"


class KnowledgeArticle(Base):
    """Article used as reference material when drafting responses."""
    __tablename__ = "knowledge_articles"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False, default="")
    relevance_score = Column(Float, nullable=False, default=0.0, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "relevance_score": self.relevance_score,
        }

    def __repr__(self):
        return f"<KnowledgeArticle(id={self.id}, title='{self.title}')>"
