"""
Automation Engine for ruleloop

The AutomationEngine runs one processing pass at a time:
1. Load every active rule (snapshot)
2. Resolve the invoker for the rule's (trigger, action) pair
3. Fetch candidate events, drop the ones this rule already completed
4. Run one attempt per event, in order
5. Record exactly one execution per attempt and bump counters on success

Failures are contained: a failed attempt becomes a failed execution, a failed
rule listing ends the pass. Nothing is retried within a pass; the next tick
is the retry.

Example:
    engine = AutomationEngine(rule_store, event_source, recorder, invokers)
    result = await engine.run_pass()
    print(result.to_dict())
"""

import logging
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..logging_config import trace_context
from .dispatch import Invoker, resolve
from .event_source import EventSource
from .invokers import ActionInvokers
from .recorder import ExecutionRecorder
from .rule_store import RuleStore
from .types import ExecutionStatus, RuleSnapshot

logger = logging.getLogger(__name__)


@dataclass
class RuleOutcome:
    """What one rule did during a pass"""
    rule_id: int
    rule_name: str
    completed: int = 0
    failed: int = 0
    skipped_reason: Optional[str] = None  # "unsupported" | "no_events"


@dataclass
class PassResult:
    """Summary of one pass (returned by run_pass and the Celery task)"""
    pass_id: str
    started_at: datetime
    skipped: bool = False
    aborted: bool = False
    error: Optional[str] = None
    rules_processed: int = 0
    executions_completed: int = 0
    executions_failed: int = 0
    duration_ms: float = 0.0
    outcomes: List[RuleOutcome] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        return data


def _error_message(exc: BaseException) -> str:
    message = str(exc).strip()
    return message or exc.__class__.__name__


def _elapsed_ms(start: float) -> float:
    return max(0.0, (time.monotonic() - start) * 1000)


class AutomationEngine:
    """
    Drives automation rules through matching, invocation and recording.

    A pass that starts while another one is still running on the same engine
    is skipped, so a slow pass never overlaps the next tick.
    """

    def __init__(
        self,
        rule_store: RuleStore,
        event_source: EventSource,
        recorder: ExecutionRecorder,
        invokers: ActionInvokers,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        """
        Initialize AutomationEngine.

        Args:
            rule_store: Access to automation rules
            event_source: Access to candidate domain events
            recorder: Persists execution records
            invokers: Action implementations bound to a generation service
            clock: Source of the pass timestamp written to last_executed
        """
        self.rule_store = rule_store
        self.event_source = event_source
        self.recorder = recorder
        self.invokers = invokers
        self.clock = clock
        self._pass_in_progress = False

    @property
    def pass_in_progress(self) -> bool:
        return self._pass_in_progress

    async def run_pass(self) -> PassResult:
        """
        Run one full processing pass.

        Returns:
            PassResult; skipped=True if another pass was running,
            aborted=True if the active rules could not be listed
        """
        pass_id = uuid.uuid4().hex[:12]
        started_at = self.clock()
        result = PassResult(pass_id=pass_id, started_at=started_at)

        if self._pass_in_progress:
            logger.warning(f"Pass {pass_id}: previous pass still running, skipping this tick")
            result.skipped = True
            return result

        self._pass_in_progress = True
        start = time.monotonic()
        try:
            with trace_context(f"pass-{pass_id}"):
                await self._run_rules(result)
        finally:
            result.duration_ms = round(_elapsed_ms(start), 2)
            self._pass_in_progress = False

        return result

    async def _run_rules(self, result: PassResult) -> None:
        try:
            rules = await self.rule_store.list_active()
        except Exception as e:
            logger.exception(f"Pass {result.pass_id}: automation processing failed, could not list rules")
            result.aborted = True
            result.error = _error_message(e)
            return

        logger.info(f"Pass {result.pass_id}: {len(rules)} active rule(s)")

        for rule in rules:
            outcome = await self.process_rule(rule, executed_at=result.started_at)
            result.outcomes.append(outcome)
            result.rules_processed += 1
            result.executions_completed += outcome.completed
            result.executions_failed += outcome.failed

        logger.info(
            f"Pass {result.pass_id}: done, {result.executions_completed} completed, "
            f"{result.executions_failed} failed",
            extra={
                "rules_processed": result.rules_processed,
                "executions_completed": result.executions_completed,
                "executions_failed": result.executions_failed,
            }
        )

    async def process_rule(self, rule: RuleSnapshot, executed_at: Optional[datetime] = None) -> RuleOutcome:
        """
        Process one rule to completion. Never raises.

        Args:
            rule: Rule snapshot from list_active()
            executed_at: Timestamp written to last_executed (defaults to now)
        """
        executed_at = executed_at or self.clock()
        outcome = RuleOutcome(rule_id=rule.id, rule_name=rule.name)

        invoker = resolve(self.invokers, rule)
        if invoker is None:
            logger.debug(
                f"Rule {rule.id}: no invoker for trigger='{rule.trigger_type}' "
                f"action='{rule.action_type}', skipped"
            )
            outcome.skipped_reason = "unsupported"
            return outcome

        start = time.monotonic()
        try:
            events = await self.event_source.fetch_candidates(rule.trigger_type)
            handled = await self.recorder.handled_event_ids(
                rule.id, rule.trigger_type, [event.get("id") for event in events]
            )
        except Exception as e:
            logger.exception(f"Rule {rule.id}: failed to load candidate events")
            if await self._record_failure(rule, e, _elapsed_ms(start), trigger_data=None):
                outcome.failed += 1
            return outcome

        pending = [event for event in events if event.get("id") not in handled]
        if not pending:
            outcome.skipped_reason = "no_events"
            return outcome

        for event in pending:
            status = await self._attempt(rule, invoker, event, executed_at)
            if status is ExecutionStatus.COMPLETED:
                outcome.completed += 1
            elif status is ExecutionStatus.FAILED:
                outcome.failed += 1

        return outcome

    async def _attempt(
        self,
        rule: RuleSnapshot,
        invoker: Invoker,
        event: Dict[str, Any],
        executed_at: datetime
    ) -> Optional[ExecutionStatus]:
        """
        One invocation attempt.

        Returns the status of the record it wrote, or None when no record
        could be written at all.
        """
        start = time.monotonic()

        try:
            envelope = await invoker(event, rule)
        except Exception as e:
            logger.warning(
                f"Rule {rule.id}: action '{rule.action_type}' failed on event {event.get('id')}: {e}"
            )
            return await self._failed(rule, e, _elapsed_ms(start), event)

        elapsed_ms = _elapsed_ms(start)

        try:
            await self.recorder.record_success(rule, envelope, elapsed_ms)
        except Exception as e:
            logger.exception(f"Rule {rule.id}: could not record completed execution")
            return await self._failed(rule, e, elapsed_ms, event)

        try:
            await self.rule_store.record_run(rule.id, executed_at)
        except Exception:
            # The completed record exists; only the counters are stale
            logger.exception(f"Rule {rule.id}: failed to update execution counters")

        return ExecutionStatus.COMPLETED

    async def _failed(
        self,
        rule: RuleSnapshot,
        exc: BaseException,
        elapsed_ms: float,
        event: Dict[str, Any]
    ) -> Optional[ExecutionStatus]:
        if await self._record_failure(rule, exc, elapsed_ms, trigger_data=event):
            return ExecutionStatus.FAILED
        return None

    async def _record_failure(
        self,
        rule: RuleSnapshot,
        exc: BaseException,
        elapsed_ms: float,
        trigger_data: Optional[Dict[str, Any]]
    ) -> bool:
        try:
            await self.recorder.record_failure(rule, _error_message(exc), elapsed_ms, trigger_data=trigger_data)
            return True
        except Exception:
            logger.exception(f"Rule {rule.id}: could not record failed execution")
            return False
