from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

AsyncCallback = Callable[[], Awaitable[object]]


class Debouncer:
    """Run ``callback`` once ``delay`` seconds after the most recent trigger.

    Each trigger cancels the pending timer, so a burst of triggers produces a
    single call.
    """

    def __init__(self, delay: float, callback: AsyncCallback) -> None:
        self.delay = delay
        self._callback = callback
        self._task: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def running(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def trigger(self) -> None:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._fire())

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def aclose(self) -> None:
        """Drop the pending timer and wait for a call that already started."""
        self.cancel()
        task, self._inflight = self._inflight, None
        if task is not None and task is not asyncio.current_task():
            await asyncio.wait({task})

    async def _fire(self) -> None:
        await asyncio.sleep(self.delay)
        # Past the delay the call is committed; a cancel from inside the callback must not abort it.
        self._inflight, self._task = self._task, None
        try:
            await self._callback()
        except Exception:
            logger.exception("debounced callback failed")
        finally:
            if self._inflight is asyncio.current_task():
                self._inflight = None


class PeriodicTask:
    def __init__(self, interval: float, callback: AsyncCallback) -> None:
        self.interval = interval
        self._callback = callback
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self._callback()
            except Exception:
                logger.exception("periodic callback failed")
