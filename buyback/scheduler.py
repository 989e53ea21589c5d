"""
Poll scheduler.

Runs a coroutine at a fixed cadence without ever overlapping two runs. A run
that outlasts the interval makes the scheduler skip the ticks it missed and
resume on the original grid.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PollScheduler:
    """Non-reentrant repeating timer on the running event loop."""

    def __init__(
        self,
        cycle: Callable[[], Awaitable[object]],
        interval: float,
        initial_delay: float = 0.0,
        name: str = "buyback",
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._cycle = cycle
        self.interval = interval
        self.initial_delay = max(0.0, initial_delay)
        self.name = name

        self._task: Optional[asyncio.Task] = None
        self._in_flight = False
        self.cycles_run = 0
        self.cycles_failed = 0
        self.ticks_skipped = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def tick(self) -> bool:
        """
        Run one cycle unless one is already in flight.

        Failures are logged and swallowed so the next tick still happens.

        Returns:
            False if the tick was skipped because a cycle was running.
        """
        if self._in_flight:
            self.ticks_skipped += 1
            logger.info(f"{self.name} cycle still running, skipping tick")
            return False

        self._in_flight = True
        try:
            await self._cycle()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.cycles_failed += 1
            logger.error(f"{self.name} cycle error: {type(e).__name__}: {e}")
        finally:
            self._in_flight = False
            self.cycles_run += 1
        return True

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        if self.initial_delay:
            await asyncio.sleep(self.initial_delay)

        next_run = loop.time()
        while True:
            await self.tick()

            next_run += self.interval
            now = loop.time()
            if next_run <= now:
                missed = int((now - next_run) // self.interval) + 1
                self.ticks_skipped += missed
                next_run += missed * self.interval
                logger.debug(f"{self.name} cycle overran, skipped {missed} tick(s)")
            await asyncio.sleep(next_run - now)

    def start(self) -> None:
        """Start the timer task on the running loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        self._task.add_done_callback(self._handle_task_exception)
        logger.info(
            f"{self.name} scheduler started (every {self.interval:g}s, "
            f"first run in {self.initial_delay:g}s)"
        )

    async def stop(self) -> None:
        """Stop the timer; an in-flight cycle is cancelled with it."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                logger.debug(f"{self.name} scheduler cancelled")
        self._task = None

    def _handle_task_exception(self, task: asyncio.Task) -> None:
        """Handle exceptions from the timer task."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            logger.error(f"{self.name} scheduler crashed: {exc}", exc_info=exc)
