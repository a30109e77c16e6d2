"""
Fire-and-forget work that outlives the request which started it.

Handlers hand coroutines to a TaskTracker instead of awaiting them. The
tracker keeps a reference to every live task, logs failures instead of
letting them escape, and lets shutdown wait for stragglers.
"""

import asyncio
from typing import Any, Awaitable, Callable

from loguru import logger


class TaskTracker:
    """Tracks background tasks so shutdown can drain them."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def run(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> asyncio.Task:
        """
        Schedule ``func(*args, **kwargs)`` without waiting for it.

        Returns:
            The scheduled task.
        """
        task = asyncio.create_task(self._guarded(func, *args, **kwargs))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guarded(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> None:
        name = getattr(func, "__qualname__", repr(func))
        try:
            await func(*args, **kwargs)
        except asyncio.CancelledError:
            logger.warning(f"Background task {name} cancelled")
            raise
        except Exception:
            logger.exception(f"Background task {name} failed")

    async def drain(self, timeout: float) -> bool:
        """
        Wait up to ``timeout`` seconds for outstanding tasks.

        Tasks still running afterwards are cancelled.

        Returns:
            True if every task finished on its own.
        """
        if not self._tasks:
            return True

        logger.info(f"Waiting for {len(self._tasks)} background task(s) to finish")
        done, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)

        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning(f"Cancelled {len(still_running)} background task(s) after {timeout}s")
            await asyncio.gather(*still_running, return_exceptions=True)

        return not still_running
