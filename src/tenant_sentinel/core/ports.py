"""Port interface for event storage adapters.

This protocol defines the contract every Event Store must implement.
The aggregation engine and the HTTP boundary depend only on this interface,
never on a concrete backend.
"""

from typing import Protocol, runtime_checkable

from tenant_sentinel.core.models import Event


@runtime_checkable
class EventStoragePort(Protocol):
    """Port for time-ordered event storage.

    Adapters implementing this protocol persist events keyed by timestamp
    and serve trailing-window range queries.
    Examples: InMemoryEventStorage, RedisEventStorage, SQLiteEventStorage.

    Write paths (add_event, cleanup, clear) raise StorageError on failure.
    Read paths (get_events_in_window, get_all_events, get_event_count) log
    failures and return an empty result instead.
    """

    async def add_event(self, event: Event) -> None:
        """Insert an event keyed by its timestamp in epoch milliseconds."""
        ...

    async def get_events_in_window(self, window_minutes: float) -> list[Event]:
        """Return events with timestamp >= now - window, oldest first.

        Args:
            window_minutes: Trailing window length in minutes.

        Returns:
            List of Event objects ordered by timestamp ascending.
        """
        ...

    async def get_all_events(self) -> list[Event]:
        """Return every stored event, oldest first."""
        ...

    async def get_event_count(self) -> int:
        """Return the number of stored events."""
        ...

    async def cleanup(self) -> int:
        """Delete events older than the retention horizon.

        Returns:
            Number of events removed.
        """
        ...

    async def clear(self) -> None:
        """Delete all events."""
        ...

    def start_cleanup(self) -> bool:
        """Start the background retention sweeper if it is not running."""
        ...

    async def stop_cleanup(self) -> None:
        """Stop the background retention sweeper."""
        ...

    async def close(self) -> None:
        """Stop the sweeper and release backend resources."""
        ...
