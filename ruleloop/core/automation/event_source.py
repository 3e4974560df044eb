"""
Event Source Accessor

Fetches the bounded candidate set of domain events a rule should look at,
plus the knowledge-base reads and writes the action invokers need.
"""

import asyncio
import logging
from typing import Any, Dict, List, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ...database import SessionFactory, session_scope
from ...models.knowledge import KnowledgeArticle, KnowledgeQuery
from ...models.workflow_execution import WorkflowExecution
from ..exceptions import EventSourceError
from .types import TriggerType, parse_trigger

logger = logging.getLogger(__name__)

DEFAULT_EVENT_LIMIT = 5
DEFAULT_ARTICLE_LIMIT = 10


class EventSource:
    """
    Reads recent domain events by trigger type.

    new_query      → unresolved knowledge queries (results_found = false)
    workflow_start → workflow executions with status "running"
    anything else  → nothing
    """

    def __init__(self, session_factory: SessionFactory, limit: int = DEFAULT_EVENT_LIMIT):
        self.session_factory = session_factory
        self.limit = limit

    async def fetch_candidates(self, trigger_type: Union[TriggerType, str]) -> List[Dict[str, Any]]:
        """
        Most-recent-first snapshot of at most `limit` events for the trigger.

        Raises:
            EventSourceError: If the database cannot be queried
        """
        trigger = parse_trigger(trigger_type)

        if trigger is TriggerType.NEW_QUERY:
            statement = (
                select(KnowledgeQuery)
                .where(KnowledgeQuery.results_found.is_(False))
                .order_by(KnowledgeQuery.created_at.desc(), KnowledgeQuery.id.desc())
                .limit(self.limit)
            )
        elif trigger is TriggerType.WORKFLOW_START:
            statement = (
                select(WorkflowExecution)
                .where(WorkflowExecution.status == "running")
                .order_by(WorkflowExecution.created_at.desc(), WorkflowExecution.id.desc())
                .limit(self.limit)
            )
        else:
            return []

        events = await asyncio.to_thread(self._fetch, trigger, statement)
        logger.debug(f"Fetched {len(events)} candidate event(s) for trigger '{trigger.value}'")
        return events

    def _fetch(self, trigger: TriggerType, statement) -> List[Dict[str, Any]]:
        try:
            with session_scope(self.session_factory) as db:
                rows = db.execute(statement).scalars().all()
                return [row.to_dict() for row in rows]
        except SQLAlchemyError as e:
            raise EventSourceError(
                f"Failed to fetch '{trigger.value}' events: {e}", trigger_type=trigger.value
            ) from e

    async def list_articles(self, limit: int = DEFAULT_ARTICLE_LIMIT) -> List[Dict[str, Any]]:
        """Knowledge articles, highest relevance first"""
        return await asyncio.to_thread(self._list_articles, limit)

    async def set_query_satisfaction(self, query_id: int, value: str) -> None:
        """Write the categorize result back onto the query"""
        await asyncio.to_thread(self._set_query_satisfaction, query_id, value)

    def _list_articles(self, limit: int) -> List[Dict[str, Any]]:
        try:
            with session_scope(self.session_factory) as db:
                rows = db.execute(
                    select(KnowledgeArticle)
                    .order_by(KnowledgeArticle.relevance_score.desc(), KnowledgeArticle.id)
                    .limit(limit)
                ).scalars().all()
                return [row.to_dict() for row in rows]
        except SQLAlchemyError as e:
            raise EventSourceError(f"Failed to list knowledge articles: {e}") from e

    def _set_query_satisfaction(self, query_id: int, value: str) -> None:
        try:
            with session_scope(self.session_factory) as db:
                query = db.get(KnowledgeQuery, query_id)
                if query is None:
                    raise EventSourceError(f"Knowledge query {query_id} no longer exists")
                query.satisfaction = value
                db.commit()
        except SQLAlchemyError as e:
            raise EventSourceError(f"Failed to update knowledge query {query_id}: {e}") from e
