from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class AutosaveHandle:
    """Recurring background task that calls ``tick`` every ``interval`` seconds.

    The first tick fires one full interval after ``start``. Exceptions raised
    by ``tick`` are logged and the loop keeps running.
    """

    def __init__(self, tick: Callable[[], None], interval: float) -> None:
        if interval <= 0:
            raise ValueError("autosave interval must be positive")
        self.interval = interval
        self.ticks = 0
        self._tick = tick
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "AutosaveHandle":
        if self.running:
            return self
        self._task = asyncio.get_running_loop().create_task(self._run(), name="draft-autosave")
        logger.debug("Autosave started", extra={"interval": self.interval})
        return self

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def stop(self) -> None:
        """Cancel the task and wait until it has finished."""
        task = self._task
        if task is None:
            return
        self.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug("Autosave stopped", extra={"ticks": self.ticks})

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self._tick()
            except Exception:
                logger.exception("Autosave tick failed")
            self.ticks += 1


__all__ = ["AutosaveHandle"]
