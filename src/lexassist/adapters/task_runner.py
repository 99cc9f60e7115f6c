"""Fire-and-forget background work on the running event loop."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from lexassist.core.interfaces import ITaskRunnerProtocol
from lexassist.observability import get_logger

logger = get_logger(__name__)


class BackgroundTaskRunner(ITaskRunnerProtocol):
    """Owns the asyncio tasks spawned for document runs and chat replies.

    Submitted tasks are held by strong reference until they finish, and any
    exception that escapes one is logged rather than lost.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        name: str | None = None,
    ) -> None:
        """Schedule func(*args) as a task and return immediately."""
        task = asyncio.create_task(func(*args), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Background task cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task raised",
                task=task.get_name(),
                error=repr(exc),
                exc_info=exc,
            )

    async def drain(self) -> None:
        """Wait until every submitted task, including ones spawned meanwhile, has finished."""
        while True:
            running = [task for task in self._tasks if not task.done()]
            if not running:
                return
            await asyncio.wait(running)
