"""Recurring poll scheduling.

PollScheduler owns the single asyncio task that triggers poll cycles: one
cycle after a short startup delay, then one per interval. Cycles never
overlap; a trigger that fires while the previous cycle is still running is
skipped and logged.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_STARTUP_DELAY_SECONDS = 10.0


class PollScheduler:
    """Runs ``poll_fn`` on an interval inside the running event loop.

    Args:
        poll_fn: Zero-argument coroutine function running one poll cycle
        interval_seconds: Period between cycle triggers
        startup_delay_seconds: Delay before the first cycle (default: 10)
    """

    def __init__(
        self,
        poll_fn: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        startup_delay_seconds: float = DEFAULT_STARTUP_DELAY_SECONDS
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.poll_fn = poll_fn
        self.interval_seconds = interval_seconds
        self.startup_delay_seconds = startup_delay_seconds
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._inflight: set = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def cycle_in_progress(self) -> bool:
        return self._lock.locked()

    async def run_once(self) -> bool:
        """Run one cycle unless another is in progress.

        Errors from the cycle are logged and swallowed so the schedule keeps
        running.

        Returns:
            True if a cycle ran, False if it was skipped due to overlap
        """
        if self.cycle_in_progress:
            logger.warning("poll_cycle_skipped_overlap")
            return False

        async with self._lock:
            try:
                await self.poll_fn()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    "poll_cycle_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True
                )
        return True

    def _trigger(self) -> None:
        # Cycles run as their own tasks so a slow cycle does not delay the timer
        task = asyncio.create_task(self.run_once())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _loop(self) -> None:
        await asyncio.sleep(self.startup_delay_seconds)
        while True:
            self._trigger()
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        """Schedule polling on the running event loop. No-op if already started."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "poll_scheduler_started",
            interval_seconds=self.interval_seconds,
            startup_delay_seconds=self.startup_delay_seconds
        )

    async def stop(self) -> None:
        """Cancel the timer and any cycle still running."""
        tasks = list(self._inflight)
        if self._task is not None:
            tasks.append(self._task)
        self._task = None

        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

        logger.info("poll_scheduler_stopped")
