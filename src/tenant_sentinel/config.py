"""Environment-driven configuration."""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from tenant_sentinel.adapters.storage.factory import StorageMode
from tenant_sentinel.adapters.storage.redis import DEFAULT_REDIS_KEY, DEFAULT_REDIS_URL
from tenant_sentinel.adapters.storage.sqlite import DEFAULT_SQLITE_PATH
from tenant_sentinel.core.models import DEFAULT_SERVICE


def _positive_number(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if not value > 0 or value == float("inf"):
        raise ValueError(f"{name} must be a positive number, got {raw!r}")
    return value


@dataclass(frozen=True)
class SentinelConfig:
    """Runtime settings for the storage layer and HTTP surface.

    Attributes:
        storage_mode: Which event store backs the service.
        redis_url: Connection URL for the redis mode.
        redis_key: Sorted-set key for the redis mode.
        sqlite_path: Database path for the sqlite mode.
        retention_minutes: Maximum event age kept by the sweeper.
        cleanup_interval_minutes: Delay between background sweeps.
        service_name: Service label stamped on middleware-produced events.
    """

    storage_mode: StorageMode = StorageMode.MEMORY
    redis_url: str = DEFAULT_REDIS_URL
    redis_key: str = DEFAULT_REDIS_KEY
    sqlite_path: str = DEFAULT_SQLITE_PATH
    retention_minutes: float = 15
    cleanup_interval_minutes: float = 1
    service_name: str = DEFAULT_SERVICE

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "SentinelConfig":
        """Load settings from environment variables.

        Raises:
            ValueError: On an unknown storage mode or a malformed number.
        """
        env = os.environ if environ is None else environ
        return cls(
            storage_mode=StorageMode.parse(env.get("EVENT_STORAGE") or "memory"),
            redis_url=env.get("REDIS_URL") or DEFAULT_REDIS_URL,
            redis_key=env.get("SENTINEL_REDIS_KEY") or DEFAULT_REDIS_KEY,
            sqlite_path=env.get("SENTINEL_SQLITE_PATH") or DEFAULT_SQLITE_PATH,
            retention_minutes=_positive_number(env, "SENTINEL_RETENTION_MINUTES", 15),
            cleanup_interval_minutes=_positive_number(
                env, "SENTINEL_CLEANUP_INTERVAL_MINUTES", 1
            ),
            service_name=env.get("SENTINEL_SERVICE_NAME") or DEFAULT_SERVICE,
        )
