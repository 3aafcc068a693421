"""Storage adapters implementing core ports."""

from tenant_sentinel.adapters.storage.base import EventStorageBase
from tenant_sentinel.adapters.storage.factory import (
    StorageMode,
    create_event_storage,
    create_event_storage_from_config,
)
from tenant_sentinel.adapters.storage.in_memory import InMemoryEventStorage
from tenant_sentinel.adapters.storage.redis import (
    RedisEventStorage,
    create_redis_client,
)
from tenant_sentinel.adapters.storage.sqlite import SQLiteEventStorage
from tenant_sentinel.adapters.storage.sweeper import RetentionSweeper

__all__ = [
    "EventStorageBase",
    "InMemoryEventStorage",
    "RedisEventStorage",
    "RetentionSweeper",
    "SQLiteEventStorage",
    "StorageMode",
    "create_event_storage",
    "create_event_storage_from_config",
    "create_redis_client",
]
