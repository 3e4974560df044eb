"""
In-process scheduler for the automation loop.

Runs AutomationEngine.run_pass() every `interval` seconds on the current
asyncio event loop. start() hands back a SchedulerHandle; stop(handle) ends
the loop and guarantees no further ticks fire. A pass that is already running
when stop() is called is allowed to finish so its attempt is recorded.

Example:
    scheduler = AutomationScheduler(engine, interval=15)
    handle = scheduler.start()
    ...
    await scheduler.stop(handle)
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from .engine import AutomationEngine

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 15.0


@dataclass(frozen=True)
class SchedulerHandle:
    """Cancellation token returned by AutomationScheduler.start()"""
    id: str


class AutomationScheduler:
    """Timer-driven controller for automation passes"""

    def __init__(
        self,
        engine: AutomationEngine,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        run_immediately: bool = False
    ):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.engine = engine
        self.interval = interval
        self.run_immediately = run_immediately

        self._handle: Optional[SchedulerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self.ticks = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> SchedulerHandle:
        """
        Schedule the loop on the running event loop.

        Raises:
            RuntimeError: If already started or called outside an event loop
        """
        if self.is_running:
            raise RuntimeError("AutomationScheduler is already running")

        self._stop_event = asyncio.Event()
        self._handle = SchedulerHandle(id=uuid.uuid4().hex)
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._stop_event), name=f"automation-scheduler-{self._handle.id[:8]}"
        )
        logger.info(f"Automation scheduler started (interval={self.interval}s)")
        return self._handle

    async def stop(self, handle: SchedulerHandle) -> None:
        """
        Stop the loop started with `handle`; returns once no tick can fire anymore.

        Raises:
            ValueError: If handle does not belong to the current run
        """
        if self._handle is None or handle != self._handle:
            raise ValueError("Unknown or stale scheduler handle")

        task, stop_event = self._task, self._stop_event
        self._handle = None
        stop_event.set()
        await task
        self._task = None
        logger.info(f"Automation scheduler stopped after {self.ticks} tick(s)")

    async def _run(self, stop_event: asyncio.Event) -> None:
        if self.run_immediately:
            await self._tick()

        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                await self._tick()

    async def _tick(self) -> None:
        self.ticks += 1
        try:
            await self.engine.run_pass()
        except Exception:
            logger.exception("Automation pass crashed, waiting for next tick")
