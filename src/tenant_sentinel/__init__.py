"""tenant-sentinel: attribute API errors and latency to tenants.

Example:
    ```python
    from tenant_sentinel import InMemoryEventStorage, aggregate_error_metrics

    storage = InMemoryEventStorage()
    await storage.add_event(event)
    top = await aggregate_error_metrics(storage, window_minutes=5, limit=10)
    ```
"""

from tenant_sentinel.adapters.storage import (
    InMemoryEventStorage,
    RedisEventStorage,
    RetentionSweeper,
    SQLiteEventStorage,
    StorageMode,
    create_event_storage,
    create_event_storage_from_config,
)
from tenant_sentinel.config import SentinelConfig
from tenant_sentinel.core.aggregation import (
    aggregate_error_metrics,
    aggregate_latency_metrics,
)
from tenant_sentinel.core.errors import (
    DeserializationError,
    SentinelError,
    StorageError,
    ValidationError,
)
from tenant_sentinel.core.models import Event, TenantErrorMetrics, TenantLatencyMetrics
from tenant_sentinel.core.ports import EventStoragePort

__version__ = "0.1.0"

__all__ = [
    "DeserializationError",
    "Event",
    "EventStoragePort",
    "InMemoryEventStorage",
    "RedisEventStorage",
    "RetentionSweeper",
    "SQLiteEventStorage",
    "SentinelConfig",
    "SentinelError",
    "StorageError",
    "StorageMode",
    "TenantErrorMetrics",
    "TenantLatencyMetrics",
    "ValidationError",
    "aggregate_error_metrics",
    "aggregate_latency_metrics",
    "create_event_storage",
    "create_event_storage_from_config",
]
