"""
Process-wide scheduler for timers owned by the service.

Every delayed or periodic job (temp-file sweeps, request deadlines, post-response
cleanup) is registered here so a finished request can cancel its timer and
shutdown can cancel whatever is still pending.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Any, Callable, Optional, Set

logger = logging.getLogger(__name__)


class ScheduledTask:
    """Handle for one registered job."""

    def __init__(self, scheduler: "TaskScheduler", name: str):
        self._scheduler = scheduler
        self.name = name
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()
        if self._task is not None:
            self._task.cancel()
        self._scheduler._forget(self)


class TaskScheduler:
    def __init__(self):
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: Set[ScheduledTask] = set()

    def start(self) -> None:
        """Bind to the running event loop. Must be called from inside it."""
        self._loop = asyncio.get_running_loop()

    @property
    def running(self) -> bool:
        return self._loop is not None

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise RuntimeError("TaskScheduler.start() has not been called")
        return self._loop

    def _forget(self, task: ScheduledTask) -> None:
        self._tasks.discard(task)

    def call_later(self, delay: float, fn: Callable[..., Any], *args, name: str = "") -> ScheduledTask:
        """Run fn(*args) once on the loop after `delay` seconds."""
        loop = self._require_loop()
        task = ScheduledTask(self, name or getattr(fn, "__name__", "job"))

        def _fire():
            task.fired = True
            self._forget(task)
            try:
                fn(*args)
            except Exception:
                logger.exception(f"Scheduled job '{task.name}' failed")

        task._handle = loop.call_later(max(0.0, delay), _fire)
        self._tasks.add(task)
        return task

    def every(self, interval: float, fn: Callable[[], Any], *, name: str = "", in_thread: bool = True) -> ScheduledTask:
        """
        Run fn every `interval` seconds until cancelled.

        Blocking jobs (filesystem sweeps) run in the default executor so they
        never stall request handling.
        """
        loop = self._require_loop()
        task = ScheduledTask(self, name or getattr(fn, "__name__", "job"))

        async def _loop():
            while True:
                await asyncio.sleep(interval)
                try:
                    if in_thread:
                        await loop.run_in_executor(None, fn)
                    else:
                        fn()
                except Exception:
                    logger.exception(f"Periodic job '{task.name}' failed")

        task._task = loop.create_task(_loop())
        self._tasks.add(task)
        return task

    def shutdown(self) -> int:
        """Cancel every outstanding job; returns how many were cancelled."""
        outstanding = list(self._tasks)
        for task in outstanding:
            task.cancel()
        self._loop = None
        if outstanding:
            logger.info(f"Cancelled {len(outstanding)} scheduled jobs")
        return len(outstanding)
