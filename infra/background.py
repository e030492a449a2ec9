# infra/background.py
"""
Fire-and-forget task submission.

Secondary work (e.g. recording a query into the memory bank) is scheduled off
the request path. Failures go to the log and are dropped; they never reach the
caller that submitted the work.
"""
import asyncio
import logging
from typing import Awaitable, Set

from infra.logging import log_error

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Keeps strong references to submitted tasks until they finish."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def submit(self, coro: Awaitable, name: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.debug(f"[Background] {task.get_name()} cancelled")
            return
        exc = task.exception()
        if exc is not None:
            log_error(f"{type(exc).__name__}: {exc}", task=task.get_name())

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every outstanding task (shutdown, tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
