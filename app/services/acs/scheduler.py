"""Cancellable recurring tasks on the running asyncio loop.

``start`` for a key that is already scheduled cancels the old task first,
so a key never has two timers. The first run happens immediately; later
runs follow every ``interval_seconds`` measured from the start of the
previous run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[object]]


class RecurringScheduler:
    def __init__(self):
        self._tasks: dict[str, asyncio.Task] = {}

    def start(self, key: str, interval_seconds: float, callback: TickCallback) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        existing = self._tasks.pop(key, None)
        if existing is not None and not existing.done():
            existing.cancel()
            logger.info("Replacing recurring task %s", key)
        self._tasks[key] = asyncio.create_task(
            self._run(key, interval_seconds, callback), name=f"recurring:{key}"
        )

    def cancel(self, key: str) -> bool:
        """Request cancellation without waiting for the task to finish."""
        task = self._tasks.pop(key, None)
        if task is None:
            return False
        if not task.done():
            task.cancel()
        return True

    async def stop(self, key: str) -> bool:
        """Cancel the task for ``key``; returns False when nothing was running."""
        task = self._tasks.pop(key, None)
        if task is None:
            return False
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        return True

    async def stop_all(self) -> None:
        for key in list(self._tasks):
            await self.stop(key)

    def is_running(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def keys(self) -> list[str]:
        return [key for key in self._tasks if self.is_running(key)]

    async def _run(self, key: str, interval_seconds: float, callback: TickCallback) -> None:
        loop = asyncio.get_running_loop()
        while True:
            started = loop.time()
            try:
                await callback()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Recurring task %s failed; next run is still scheduled", key)
            elapsed = loop.time() - started
            await asyncio.sleep(max(0.0, interval_seconds - elapsed))
