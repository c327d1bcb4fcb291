"""
Detached background work: cache write-backs that must not delay the response.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

log = logging.getLogger(__name__)


class BackgroundWriter:
    """
    Schedules coroutines on the running loop without awaiting them.

    Tasks are held until they finish so they are not garbage-collected
    mid-flight. Failures are logged and reported to `on_complete`, never
    raised to the code that scheduled them.
    """

    def __init__(self, on_complete: Callable[[bool, str], None] | None = None):
        self._tasks: set[asyncio.Task] = set()
        self._on_complete = on_complete

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, coro: Coroutine[Any, Any, Any], description: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=description)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            log.debug(f"Background task cancelled: {task.get_name()}")
            return

        error = task.exception()
        if error is not None:
            log.warning(f"Background task failed ({task.get_name()}): {error}")
        if self._on_complete:
            try:
                self._on_complete(error is None, task.get_name())
            except Exception as e:
                log.debug(f"Background completion callback failed: {e}")

    async def drain(self) -> None:
        """Waits for every scheduled task, including ones scheduled meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
