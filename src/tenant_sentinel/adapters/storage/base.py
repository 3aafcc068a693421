"""Base class for event storage adapters."""

import math
import time
from collections.abc import Callable

from tenant_sentinel.adapters.storage.sweeper import RetentionSweeper

DEFAULT_RETENTION_MINUTES = 15
DEFAULT_CLEANUP_INTERVAL_MINUTES = 1

_MS_PER_MINUTE = 60_000

Clock = Callable[[], float]


class EventStorageBase:
    """Retention, clock and sweeper lifecycle shared by every event store.

    Subclasses implement the storage operations of EventStoragePort and call
    ``_ensure_sweeper()`` at the start of each one, so a store built outside
    a running loop starts sweeping on first use.

    Args:
        retention_minutes: Maximum event age kept by cleanup().
        cleanup_interval_minutes: Delay between background sweeps.
        clock: Returns the current time in epoch seconds.
        start_sweeper: Start the retention sweeper on construction.
    """

    def __init__(
        self,
        retention_minutes: float = DEFAULT_RETENTION_MINUTES,
        cleanup_interval_minutes: float = DEFAULT_CLEANUP_INTERVAL_MINUTES,
        clock: Clock | None = None,
        start_sweeper: bool = True,
    ) -> None:
        if retention_minutes <= 0:
            raise ValueError("retention_minutes must be positive")
        self._retention_ms = int(retention_minutes * _MS_PER_MINUTE)
        self._clock = clock or time.time
        self._sweeper = RetentionSweeper(
            self.cleanup,
            interval_seconds=cleanup_interval_minutes * 60,
            name=f"{type(self).__name__}.sweeper",
        )
        self._sweeper_wanted = start_sweeper
        if start_sweeper:
            self._sweeper.start()

    @property
    def retention_ms(self) -> int:
        return self._retention_ms

    @property
    def expiry_seconds(self) -> int:
        """Safety-net expiry of the whole collection: twice the retention."""
        return math.ceil(self._retention_ms / 1000 * 2)

    @property
    def sweeper(self) -> RetentionSweeper:
        return self._sweeper

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _window_cutoff_ms(self, window_minutes: float) -> int:
        """Lowest timestamp (inclusive) inside a trailing window."""
        return self._now_ms() - int(window_minutes * _MS_PER_MINUTE)

    def _retention_cutoff_ms(self) -> int:
        """Events strictly older than this are evicted."""
        return self._now_ms() - self._retention_ms

    def _ensure_sweeper(self) -> None:
        if self._sweeper_wanted and not self._sweeper.running:
            self._sweeper.start()

    async def cleanup(self) -> int:
        raise NotImplementedError

    def start_cleanup(self) -> bool:
        """Start the background retention sweeper if it is not running."""
        self._sweeper_wanted = True
        return self._sweeper.start()

    async def stop_cleanup(self) -> None:
        """Stop the background retention sweeper (shutdown, testing)."""
        self._sweeper_wanted = False
        await self._sweeper.stop()

    async def _release(self) -> None:
        """Release backend resources. Overridden by persistent stores."""

    async def close(self) -> None:
        """Stop the sweeper, then release backend resources."""
        await self.stop_cleanup()
        await self._release()
