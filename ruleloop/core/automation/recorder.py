"""
Execution Recorder

Turns one invocation attempt into exactly one AutomationExecution row and
serves the execution history. Session work runs in a worker thread
(asyncio.to_thread) so the event loop keeps turning while the driver blocks.
"""

import asyncio
import logging

from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from ...database import SessionFactory, session_scope
from ...models.automation_execution import AutomationExecution
from ..exceptions import RecorderError
from ..serialization import make_json_serializable
from .types import ExecutionStatus, InvocationEnvelope, RuleSnapshot

logger = logging.getLogger(__name__)


class ExecutionRecorder:
    """Persists execution outcomes; records are never updated afterwards"""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    async def record_success(
        self,
        rule: RuleSnapshot,
        envelope: InvocationEnvelope,
        elapsed_ms: float
    ) -> Dict[str, Any]:
        """Create a completed execution from the envelope"""
        return await asyncio.to_thread(
            self._create,
            rule=rule,
            status=ExecutionStatus.COMPLETED,
            trigger_data=envelope.trigger,
            trigger_event_id=envelope.event_id,
            result=envelope.data,
            error_message=None,
            elapsed_ms=elapsed_ms,
        )

    async def record_failure(
        self,
        rule: RuleSnapshot,
        error_message: str,
        elapsed_ms: float,
        trigger_data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Create a failed execution; rule counters are left alone"""
        return await asyncio.to_thread(
            self._create,
            rule=rule,
            status=ExecutionStatus.FAILED,
            trigger_data=trigger_data,
            trigger_event_id=trigger_data.get("id") if trigger_data else None,
            result=None,
            error_message=error_message,
            elapsed_ms=elapsed_ms,
        )

    def _create(
        self,
        rule: RuleSnapshot,
        status: ExecutionStatus,
        trigger_data: Optional[Dict[str, Any]],
        trigger_event_id: Optional[int],
        result: Optional[Dict[str, Any]],
        error_message: Optional[str],
        elapsed_ms: float
    ) -> Dict[str, Any]:
        try:
            with session_scope(self.session_factory) as db:
                execution = AutomationExecution(
                    rule_id=rule.id,
                    rule_name=rule.name,
                    trigger_type=rule.trigger_type,
                    trigger_data=make_json_serializable(trigger_data) if trigger_data is not None else None,
                    trigger_event_id=trigger_event_id,
                    status=status.value,
                    result=make_json_serializable(result) if result is not None else None,
                    error_message=error_message,
                    execution_time_ms=max(0.0, round(elapsed_ms, 2)),
                )
                db.add(execution)
                db.commit()
                db.refresh(execution)
                record = execution.to_dict()
        except SQLAlchemyError as e:
            raise RecorderError(f"Failed to record {status.value} execution for rule {rule.id}: {e}") from e

        logger.info(
            f"Rule {rule.id} '{rule.name}': execution {record['id']} {status.value} "
            f"in {record['execution_time_ms']:.0f}ms",
            extra={"rule_id": rule.id, "execution_id": record["id"], "status": status.value}
        )
        return record

    async def handled_event_ids(
        self,
        rule_id: int,
        trigger_type: str,
        event_ids: Iterable[int]
    ) -> Set[int]:
        """
        Event ids this rule already completed an execution for.

        Only records written under the same trigger type count: a query and a
        workflow run can share an id, and editing a rule's trigger must not
        make the new event stream look already handled.
        """
        ids = [event_id for event_id in event_ids if event_id is not None]
        if not ids:
            return set()
        return await asyncio.to_thread(self._handled_event_ids, rule_id, trigger_type, ids)

    def _handled_event_ids(self, rule_id: int, trigger_type: str, ids: List[int]) -> Set[int]:
        try:
            with session_scope(self.session_factory) as db:
                rows = db.execute(
                    select(AutomationExecution.trigger_event_id)
                    .where(AutomationExecution.rule_id == rule_id)
                    .where(AutomationExecution.trigger_type == trigger_type)
                    .where(AutomationExecution.status == ExecutionStatus.COMPLETED.value)
                    .where(AutomationExecution.trigger_event_id.in_(ids))
                ).scalars().all()
                return set(rows)
        except SQLAlchemyError as e:
            raise RecorderError(f"Failed to read execution history of rule {rule_id}: {e}") from e

    async def list_executions(
        self,
        rule_id: Optional[int] = None,
        status: Optional[str] = None,
        limit: int = 50
    ) -> List[Dict[str, Any]]:
        """Newest first, optionally filtered by rule and status"""
        statement = select(AutomationExecution)
        if rule_id is not None:
            statement = statement.where(AutomationExecution.rule_id == rule_id)
        if status is not None:
            statement = statement.where(AutomationExecution.status == status)
        statement = statement.order_by(
            AutomationExecution.created_at.desc(), AutomationExecution.id.desc()
        ).limit(limit)

        return await asyncio.to_thread(self._list_executions, statement)

    def _list_executions(self, statement) -> List[Dict[str, Any]]:
        try:
            with session_scope(self.session_factory) as db:
                return [row.to_dict() for row in db.execute(statement).scalars().all()]
        except SQLAlchemyError as e:
            raise RecorderError(f"Failed to list executions: {e}") from e

    async def success_rates(self) -> Dict[int, float]:
        """
        Percentage of completed executions per rule_id (0-100, two decimals).
        Rules without executions are absent.
        """
        rows = await asyncio.to_thread(self._count_by_status)

        totals: Dict[int, int] = {}
        completed: Dict[int, int] = {}
        for rule_id, status, count in rows:
            totals[rule_id] = totals.get(rule_id, 0) + count
            if status == ExecutionStatus.COMPLETED.value:
                completed[rule_id] = count

        return {
            rule_id: round(completed.get(rule_id, 0) / total * 100, 2)
            for rule_id, total in totals.items()
        }

    def _count_by_status(self) -> List[Any]:
        try:
            with session_scope(self.session_factory) as db:
                return db.execute(
                    select(
                        AutomationExecution.rule_id,
                        AutomationExecution.status,
                        func.count(AutomationExecution.id),
                    ).group_by(AutomationExecution.rule_id, AutomationExecution.status)
                ).all()
        except SQLAlchemyError as e:
            raise RecorderError(f"Failed to compute success rates: {e}") from e
