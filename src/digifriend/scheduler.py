"""One-shot deferred actions on the asyncio event loop."""

import asyncio
import inspect
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

Action = Callable[[], Any]


class DeferredScheduler:
    """Runs callbacks once after a delay.

    Actions live only in memory: they are lost if the process stops before
    they fire.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of actions that have not fired yet."""
        return len(self._tasks)

    def schedule(self, delay: float, action: Action) -> asyncio.Task:
        """Run `action` after `delay` seconds.

        Must be called from within a running event loop. The action may be
        a plain callable or a coroutine function.
        """
        task = asyncio.create_task(self._run(max(0.0, delay), action))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, delay: float, action: Action) -> None:
        await asyncio.sleep(delay)
        try:
            result = action()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Deferred action failed")

    def shutdown(self) -> None:
        """Cancel all pending actions."""
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
