"""
Cancellable periodic scheduler.

Runs an async callback at a fixed interval. Ticks never overlap: the next
sleep starts after the previous tick returns. ``stop()`` lets a running
tick finish and cancels a pending sleep, so shutdown is deterministic.
The sleep function is injectable, which lets tests drive the loop with a
virtual clock instead of real time.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicScheduler:
    """Fixed-interval driver for a background tick."""

    def __init__(self, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._in_tick = False
        self.tick_count = 0

    @property
    def running(self) -> bool:
        return self._running

    def start(self, interval: float, on_tick: Callable[[], Awaitable[object]]) -> asyncio.Task:
        """
        Start ticking. The first tick runs immediately.

        Args:
            interval: Seconds between the end of one tick and the start of the next
            on_tick: Coroutine function called on every tick

        Returns:
            The background task driving the loop

        Raises:
            RuntimeError: If the scheduler is already running
        """
        if self._running:
            raise RuntimeError("Scheduler already running")
        if interval <= 0:
            raise ValueError("interval must be positive")

        self._running = True
        self._task = asyncio.create_task(self._loop(interval, on_tick))
        logger.info(f"Scheduler started (every {interval:g}s)")
        return self._task

    async def _loop(self, interval: float, on_tick: Callable[[], Awaitable[object]]) -> None:
        while self._running:
            self._in_tick = True
            try:
                await on_tick()
            except Exception as e:
                logger.error(f"Scheduled tick failed: {e}", exc_info=True)
            finally:
                self._in_tick = False
                self.tick_count += 1

            if not self._running:
                break
            await self._sleep(interval)

    async def stop(self) -> None:
        """Stop the loop, waiting for a tick in progress to finish."""
        if not self._task:
            self._running = False
            return

        self._running = False
        task, self._task = self._task, None

        # called from inside a tick: the loop exits when the tick returns
        if task is asyncio.current_task():
            return

        if not self._in_tick:
            task.cancel()

        try:
            await task
        except asyncio.CancelledError:
            pass

        logger.info("Scheduler stopped")
