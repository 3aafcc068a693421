"""Background retention sweeper for event stores."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """Periodically invokes a cleanup coroutine on the running event loop.

    The sweep runs as an asyncio task independent of request traffic.
    A failing sweep is logged and the next one is still scheduled.
    Stopping waits for a sweep already in progress to finish.

    Args:
        cleanup: Coroutine function returning the number of removed events.
        interval_seconds: Delay between the end of one sweep and the next.
        name: Task name, used in log messages.
    """

    def __init__(
        self,
        cleanup: Callable[[], Awaitable[int]],
        interval_seconds: float,
        name: str = "retention-sweeper",
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._cleanup = cleanup
        self._interval = interval_seconds
        self._name = name
        self._task: asyncio.Task[None] | None = None
        self._stop_requested: asyncio.Event | None = None

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        """Return True while the sweep task is alive."""
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Spawn the sweep task on the running loop.

        Returns:
            True if the task is running after the call, False if there is
            no running event loop yet (the caller may retry later).
        """
        if self.running:
            return True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        self._stop_requested = asyncio.Event()
        self._task = loop.create_task(self._run(self._stop_requested), name=self._name)
        logger.info("%s started (interval %.1fs)", self._name, self._interval)
        return True

    async def stop(self) -> None:
        """Ask the loop to exit and wait for it."""
        task = self._task
        if task is None:
            return
        self._task = None
        if self._stop_requested is not None:
            self._stop_requested.set()
        if task.done() or task.get_loop() is not asyncio.get_running_loop():
            # Finished, or owned by another (possibly closed) loop.
            return
        await task
        logger.info("%s stopped", self._name)

    async def sweep_once(self) -> int:
        """Run a single sweep, logging instead of raising on failure."""
        try:
            removed = await self._cleanup()
        except Exception:
            logger.exception("%s: cleanup failed", self._name)
            return 0
        return removed

    async def _run(self, stop_requested: asyncio.Event) -> None:
        while not stop_requested.is_set():
            try:
                await asyncio.wait_for(stop_requested.wait(), timeout=self._interval)
            except TimeoutError:
                await self.sweep_once()
