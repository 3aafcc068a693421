"""Storage selection: build the event store chosen by configuration."""

import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from tenant_sentinel.adapters.storage.base import (
    DEFAULT_CLEANUP_INTERVAL_MINUTES,
    DEFAULT_RETENTION_MINUTES,
    EventStorageBase,
)
from tenant_sentinel.adapters.storage.in_memory import InMemoryEventStorage
from tenant_sentinel.adapters.storage.redis import (
    DEFAULT_REDIS_KEY,
    DEFAULT_REDIS_URL,
    RedisEventStorage,
)
from tenant_sentinel.adapters.storage.sqlite import (
    DEFAULT_SQLITE_PATH,
    SQLiteEventStorage,
)

if TYPE_CHECKING:
    from tenant_sentinel.config import SentinelConfig

logger = logging.getLogger(__name__)


class StorageMode(StrEnum):
    """Recognized values of the storage mode setting."""

    MEMORY = "memory"
    REDIS = "redis"
    SQLITE = "sqlite"

    @classmethod
    def parse(cls, value: "str | StorageMode") -> "StorageMode":
        """Parse a mode name case-insensitively.

        Raises:
            ValueError: If the name is not a recognized mode.
        """
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(mode.value for mode in cls)
            raise ValueError(
                f"Unknown storage mode {value!r} (expected one of: {choices})"
            ) from None


def create_event_storage(
    mode: str | StorageMode = StorageMode.MEMORY,
    retention_minutes: float = DEFAULT_RETENTION_MINUTES,
    cleanup_interval_minutes: float = DEFAULT_CLEANUP_INTERVAL_MINUTES,
    *,
    redis_url: str = DEFAULT_REDIS_URL,
    redis_key: str = DEFAULT_REDIS_KEY,
    sqlite_path: str = DEFAULT_SQLITE_PATH,
    start_sweeper: bool = True,
) -> EventStorageBase:
    """Create the event store for the given mode.

    Called once at startup; the returned instance is shared by ingestion,
    aggregation and debug consumers until it is closed.

    Args:
        mode: "memory", "redis" or "sqlite".
        retention_minutes: Maximum event age kept by the sweeper.
        cleanup_interval_minutes: Delay between background sweeps.
        redis_url: Connection URL for the redis mode.
        redis_key: Sorted-set key for the redis mode.
        sqlite_path: Database path for the sqlite mode.
        start_sweeper: Start the retention sweeper on construction.

    Returns:
        A store implementing EventStoragePort.
    """
    storage_mode = StorageMode.parse(mode)
    if storage_mode is StorageMode.REDIS:
        logger.info("Using Redis event storage at key %s", redis_key)
        return RedisEventStorage(
            retention_minutes,
            cleanup_interval_minutes,
            redis_url=redis_url,
            key=redis_key,
            start_sweeper=start_sweeper,
        )
    if storage_mode is StorageMode.SQLITE:
        logger.info("Using SQLite event storage at %s", sqlite_path)
        return SQLiteEventStorage(
            sqlite_path,
            retention_minutes,
            cleanup_interval_minutes,
            start_sweeper=start_sweeper,
        )
    logger.info("Using in-memory event storage")
    return InMemoryEventStorage(
        retention_minutes, cleanup_interval_minutes, start_sweeper=start_sweeper
    )


def create_event_storage_from_config(
    config: "SentinelConfig", start_sweeper: bool = True
) -> EventStorageBase:
    """Create the event store described by a SentinelConfig."""
    return create_event_storage(
        config.storage_mode,
        config.retention_minutes,
        config.cleanup_interval_minutes,
        redis_url=config.redis_url,
        redis_key=config.redis_key,
        sqlite_path=config.sqlite_path,
        start_sweeper=start_sweeper,
    )
