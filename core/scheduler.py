"""
In-process recurring task scheduler.

Each RecurringTask is an asyncio task that sleeps for its interval and
then runs its callback. A failing callback is logged and the loop keeps
its timer. run_once() executes one tick immediately so tests never wait
on wall-clock time.

Usage:
    scheduler = Scheduler()
    scheduler.every("daily-digest", 24 * 60 * 60, jobs.send_daily_digest)
    scheduler.start_all()
    ...
    await scheduler.shutdown()
"""
import asyncio
from typing import Awaitable, Callable, Dict, List, Optional

from core.logging import get_logger

logger = get_logger("scheduler")

Callback = Callable[[], Awaitable[object]]


class RecurringTask:
    """A callback run every `interval` seconds until cancelled."""

    def __init__(self, name: str, interval: float, callback: Callback, run_immediately: bool = False):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.callback = callback
        self.run_immediately = run_immediately
        self.runs = 0
        self.failures = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Spawn the background loop. Requires a running event loop."""
        if self.is_running:
            logger.warning("Task already running", extra={"task": self.name})
            return
        self._task = asyncio.create_task(self._run_loop(), name=f"recurring:{self.name}")
        logger.info(f"Scheduled {self.name}", extra={"task": self.name, "interval_seconds": self.interval})

    async def cancel(self) -> None:
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info(f"Cancelled {self.name}", extra={"task": self.name})

    async def run_once(self) -> bool:
        """
        Run the callback once now.

        Returns:
            True if the callback completed, False if it raised
        """
        self.runs += 1
        try:
            await self.callback()
            return True
        except asyncio.CancelledError:
            raise
        except Exception:
            self.failures += 1
            logger.exception(f"Scheduled task {self.name} failed", extra={"task": self.name})
            return False

    async def _run_loop(self) -> None:
        if self.run_immediately:
            await self.run_once()
        while True:
            await asyncio.sleep(self.interval)
            await self.run_once()


class Scheduler:
    """A named set of recurring tasks with one shutdown handle."""

    def __init__(self):
        self._tasks: Dict[str, RecurringTask] = {}

    def every(self, name: str, interval: float, callback: Callback, run_immediately: bool = False) -> RecurringTask:
        if name in self._tasks:
            raise ValueError(f"Task {name} already registered")
        task = RecurringTask(name, interval, callback, run_immediately)
        self._tasks[name] = task
        return task

    def get(self, name: str) -> RecurringTask:
        return self._tasks[name]

    @property
    def tasks(self) -> List[RecurringTask]:
        return list(self._tasks.values())

    def start_all(self) -> None:
        for task in self._tasks.values():
            task.start()

    async def run_all_once(self) -> Dict[str, bool]:
        return {name: await task.run_once() for name, task in self._tasks.items()}

    async def shutdown(self) -> None:
        for task in self._tasks.values():
            await task.cancel()
        logger.info("Scheduler stopped", extra={"tasks": len(self._tasks)})
