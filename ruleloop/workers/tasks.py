"""
Celery Tasks for the ruleloop automation loop

Main Tasks:
- process_automations_task: Run one automation pass (scheduled by beat)

The task is never retried by Celery: failed attempts are already stored as
failed executions and the next beat tick is the retry.
"""

import asyncio
import logging
from typing import Any, Dict

from .celery_app import celery_app
from ..config import get_settings
from ..database import get_session_factory
from ..core.automation import AutomationEngine, PassResult, build_engine
from ..core.generation.registry import GenerationRegistry

logger = logging.getLogger(__name__)


def get_automation_engine() -> AutomationEngine:
    """
    Fresh engine per task: each asyncio.run() gets its own event loop,
    so the provider client must not be shared across tasks.
    """
    settings = get_settings()
    return build_engine(
        get_session_factory(),
        GenerationRegistry.get_service(settings.automation_model, cache=False),
        event_limit=settings.automation_event_limit,
    )


async def run_pass_and_close(engine: AutomationEngine) -> PassResult:
    """One pass, then close the task's provider client inside the same event loop"""
    try:
        return await engine.run_pass()
    finally:
        await engine.invokers.generation.aclose()


@celery_app.task(
    bind=True,
    name="process_automations_task",
    max_retries=0,
)
def process_automations_task(self) -> Dict[str, Any]:
    """
    Run one automation pass.

    Returns:
        PassResult.to_dict():
        {
            "pass_id": "3f2a9c...",
            "skipped": false,
            "aborted": false,
            "rules_processed": 3,
            "executions_completed": 4,
            "executions_failed": 1,
            ...
        }
    """
    task_id = self.request.id
    logger.info(f"Task {task_id}: Starting automation pass")

    engine = get_automation_engine()
    result = asyncio.run(run_pass_and_close(engine))

    if result.aborted:
        logger.error(f"Task {task_id}: Pass {result.pass_id} aborted: {result.error}")
    else:
        logger.info(
            f"Task {task_id}: Pass {result.pass_id} finished: "
            f"{result.executions_completed} completed, {result.executions_failed} failed "
            f"in {result.duration_ms:.0f}ms"
        )

    return result.to_dict()
