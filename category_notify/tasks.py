"""
Detached background work.

Dispatches run as asyncio tasks that outlive the call that started them. The
registry holds a reference to each task until it finishes and logs whatever it
raised, so errors never propagate back to the code that spawned it.
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine

import structlog

from .metrics import MetricsCollector

log = structlog.get_logger()


class BackgroundTasks:
    """Tracks fire-and-forget tasks."""

    def __init__(self, metrics: MetricsCollector | None = None) -> None:
        self._tasks: set[asyncio.Task] = set()
        self._metrics = metrics

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        self._report()
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        self._report()
        if task.cancelled():
            log.info("tasks.cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            log.error(
                "tasks.failed",
                task=task.get_name(),
                error=str(exc),
                exc_info=exc,
            )

    def _report(self) -> None:
        if self._metrics:
            self._metrics.set_gauge("background_tasks", len(self._tasks))

    async def drain(self) -> None:
        """Wait for every running task, including ones spawned meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
