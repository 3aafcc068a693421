"""In-memory event storage adapter."""

import bisect
import logging

from tenant_sentinel.adapters.storage.base import (
    DEFAULT_CLEANUP_INTERVAL_MINUTES,
    DEFAULT_RETENTION_MINUTES,
    Clock,
    EventStorageBase,
)
from tenant_sentinel.core.models import Event

logger = logging.getLogger(__name__)


class InMemoryEventStorage(EventStorageBase):
    """In-memory implementation of EventStoragePort.

    Stores events in a list kept sorted by timestamp, with a parallel list
    of scores for bisection. Suitable for testing and single-process
    deployments where persistence across restarts is not required.

    Operations never await while mutating, so concurrent coroutines on one
    event loop cannot interleave inside a mutation.
    """

    def __init__(
        self,
        retention_minutes: float = DEFAULT_RETENTION_MINUTES,
        cleanup_interval_minutes: float = DEFAULT_CLEANUP_INTERVAL_MINUTES,
        clock: Clock | None = None,
        start_sweeper: bool = True,
    ) -> None:
        self._scores: list[int] = []
        self._events: list[Event] = []
        self._expires_at_ms: int | None = None
        super().__init__(
            retention_minutes, cleanup_interval_minutes, clock, start_sweeper
        )

    def _expire_if_stale(self) -> None:
        # Mirrors a backend-side TTL on the whole collection.
        if self._expires_at_ms is not None and self._now_ms() >= self._expires_at_ms:
            logger.info(
                "Event buffer expired after inactivity; dropping %d events",
                len(self._events),
            )
            self._drop_all()

    def _drop_all(self) -> None:
        self._scores = []
        self._events = []
        self._expires_at_ms = None

    async def add_event(self, event: Event) -> None:
        """Insert an event after any events sharing its timestamp."""
        self._ensure_sweeper()
        self._expire_if_stale()
        score = event.timestamp_ms
        index = bisect.bisect_right(self._scores, score)
        self._scores.insert(index, score)
        self._events.insert(index, event)
        self._expires_at_ms = self._now_ms() + self.expiry_seconds * 1000

    async def get_events_in_window(self, window_minutes: float) -> list[Event]:
        """Return events with timestamp >= now - window, oldest first."""
        self._ensure_sweeper()
        self._expire_if_stale()
        start = bisect.bisect_left(self._scores, self._window_cutoff_ms(window_minutes))
        return self._events[start:]

    async def get_all_events(self) -> list[Event]:
        """Return every stored event, oldest first."""
        self._ensure_sweeper()
        self._expire_if_stale()
        return list(self._events)

    async def get_event_count(self) -> int:
        """Return the number of stored events."""
        self._ensure_sweeper()
        self._expire_if_stale()
        return len(self._events)

    async def cleanup(self) -> int:
        """Delete events older than the retention horizon."""
        self._expire_if_stale()
        end = bisect.bisect_left(self._scores, self._retention_cutoff_ms())
        if end:
            del self._scores[:end]
            del self._events[:end]
            logger.info(
                "Cleaned up %d old events (retention: %smin)",
                end,
                self.retention_ms / 60_000,
            )
        return end

    async def clear(self) -> None:
        """Delete all events."""
        self._drop_all()
