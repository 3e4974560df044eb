"""
Rule Store Accessor

Reads and writes AutomationRule rows. The loop only needs list_active()
and record_run(); the rest backs the rule management API.

Each async method hands its session work to asyncio.to_thread so a slow
database never stalls the event loop (API requests, the scheduler tick).
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from ...database import SessionFactory, session_scope
from ...models.automation_rule import AutomationRule
from ..exceptions import RuleNotFoundError, RuleStoreError
from .types import RuleSnapshot

logger = logging.getLogger(__name__)

# Bookkeeping columns (execution_count, last_executed) are owned by the loop
EDITABLE_FIELDS = frozenset([
    "name", "trigger_type", "action_type", "agent_name",
    "condition", "configuration", "is_active",
])


class RuleStore:
    """SQLAlchemy-backed access to automation rules"""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    # ------------------------------------------------------------------
    # Loop operations
    # ------------------------------------------------------------------

    async def list_active(self) -> List[RuleSnapshot]:
        """
        Snapshot of every rule with is_active = true, in store order (id).

        Raises:
            RuleStoreError: If the database cannot be queried
        """
        return await asyncio.to_thread(self._list_active)

    async def record_run(self, rule_id: int, executed_at: datetime) -> None:
        """
        Partial update after a completed attempt:
        execution_count += 1, last_executed = executed_at.

        The increment happens in SQL so concurrent writers never lose a count.
        """
        await asyncio.to_thread(self._record_run, rule_id, executed_at)
        logger.debug(f"Rule {rule_id}: execution counters updated")

    def _list_active(self) -> List[RuleSnapshot]:
        try:
            with session_scope(self.session_factory) as db:
                rows = db.execute(
                    select(AutomationRule)
                    .where(AutomationRule.is_active.is_(True))
                    .order_by(AutomationRule.id)
                ).scalars().all()
                return [RuleSnapshot.from_model(row) for row in rows]
        except SQLAlchemyError as e:
            raise RuleStoreError(f"Failed to list active rules: {e}") from e

    def _record_run(self, rule_id: int, executed_at: datetime) -> None:
        try:
            with session_scope(self.session_factory) as db:
                result = db.execute(
                    update(AutomationRule)
                    .where(AutomationRule.id == rule_id)
                    .values(
                        execution_count=AutomationRule.execution_count + 1,
                        last_executed=executed_at,
                    )
                )
                if result.rowcount == 0:
                    raise RuleNotFoundError(f"Rule {rule_id} not found", rule_id=rule_id)
                db.commit()
        except SQLAlchemyError as e:
            raise RuleStoreError(f"Failed to update counters of rule {rule_id}: {e}") from e

    # ------------------------------------------------------------------
    # Management operations
    # ------------------------------------------------------------------

    async def list_rules(self) -> List[Dict[str, Any]]:
        """All rules, most recently updated first"""
        return await asyncio.to_thread(self._list_rules)

    async def get(self, rule_id: int) -> Dict[str, Any]:
        return await asyncio.to_thread(self._get, rule_id)

    async def create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Create a rule from editable fields; counters start at zero"""
        return await asyncio.to_thread(self._create, self._editable(fields))

    async def update(self, rule_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Partial merge of editable fields (not a full replace)"""
        return await asyncio.to_thread(self._update, rule_id, self._editable(fields))

    async def set_active(self, rule_id: int, active: bool) -> Dict[str, Any]:
        return await self.update(rule_id, {"is_active": active})

    async def toggle(self, rule_id: int) -> Dict[str, Any]:
        """Flip is_active; execution history is untouched"""
        rule = await self.get(rule_id)
        return await self.set_active(rule_id, not rule["is_active"])

    async def delete(self, rule_id: int) -> None:
        await asyncio.to_thread(self._delete, rule_id)

    def _list_rules(self) -> List[Dict[str, Any]]:
        try:
            with session_scope(self.session_factory) as db:
                rows = db.execute(
                    select(AutomationRule).order_by(
                        AutomationRule.updated_at.desc(), AutomationRule.id.desc()
                    )
                ).scalars().all()
                return [row.to_dict() for row in rows]
        except SQLAlchemyError as e:
            raise RuleStoreError(f"Failed to list rules: {e}") from e

    def _get(self, rule_id: int) -> Dict[str, Any]:
        try:
            with session_scope(self.session_factory) as db:
                return self._load(db, rule_id).to_dict()
        except SQLAlchemyError as e:
            raise RuleStoreError(f"Failed to load rule {rule_id}: {e}") from e

    def _create(self, values: Dict[str, Any]) -> Dict[str, Any]:
        try:
            with session_scope(self.session_factory) as db:
                rule = AutomationRule(**values)
                db.add(rule)
                db.commit()
                db.refresh(rule)
                logger.info(f"Created automation rule {rule.id} '{rule.name}'")
                return rule.to_dict()
        except SQLAlchemyError as e:
            raise RuleStoreError(f"Failed to create rule: {e}") from e

    def _update(self, rule_id: int, values: Dict[str, Any]) -> Dict[str, Any]:
        try:
            with session_scope(self.session_factory) as db:
                rule = self._load(db, rule_id)
                for key, value in values.items():
                    setattr(rule, key, value)
                db.commit()
                db.refresh(rule)
                logger.info(f"Updated automation rule {rule_id}: {sorted(values)}")
                return rule.to_dict()
        except SQLAlchemyError as e:
            raise RuleStoreError(f"Failed to update rule {rule_id}: {e}") from e

    def _delete(self, rule_id: int) -> None:
        try:
            with session_scope(self.session_factory) as db:
                rule = self._load(db, rule_id)
                db.delete(rule)
                db.commit()
                logger.info(f"Deleted automation rule {rule_id}")
        except SQLAlchemyError as e:
            raise RuleStoreError(f"Failed to delete rule {rule_id}: {e}") from e

    @staticmethod
    def _load(db, rule_id: int) -> AutomationRule:
        rule = db.get(AutomationRule, rule_id)
        if rule is None:
            raise RuleNotFoundError(f"Rule {rule_id} not found", rule_id=rule_id)
        return rule

    @staticmethod
    def _editable(fields: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not editable on a rule: {sorted(unknown)}")
        return {
            key: value.value if hasattr(value, "value") else value
            for key, value in fields.items()
        }
