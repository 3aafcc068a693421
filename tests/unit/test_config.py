"""Tests for environment-driven configuration."""

import pytest

from tenant_sentinel.adapters.storage.factory import StorageMode
from tenant_sentinel.config import SentinelConfig

pytestmark = [pytest.mark.unit, pytest.mark.tier(1)]


def test_defaults_when_environment_is_empty() -> None:
    config = SentinelConfig.from_env({})

    assert config.storage_mode is StorageMode.MEMORY
    assert config.redis_url == "redis://localhost:6379"
    assert config.redis_key == "sentinel:events"
    assert config.retention_minutes == 15
    assert config.cleanup_interval_minutes == 1
    assert config.service_name == "unknown-service"


def test_reads_every_variable() -> None:
    config = SentinelConfig.from_env(
        {
            "EVENT_STORAGE": "Redis",
            "REDIS_URL": "redis://cache:6380/2",
            "SENTINEL_REDIS_KEY": "staging:events",
            "SENTINEL_SQLITE_PATH": "/var/lib/sentinel.db",
            "SENTINEL_RETENTION_MINUTES": "30",
            "SENTINEL_CLEANUP_INTERVAL_MINUTES": "0.5",
            "SENTINEL_SERVICE_NAME": "billing",
        }
    )

    assert config.storage_mode is StorageMode.REDIS
    assert config.redis_url == "redis://cache:6380/2"
    assert config.redis_key == "staging:events"
    assert config.sqlite_path == "/var/lib/sentinel.db"
    assert config.retention_minutes == 30
    assert config.cleanup_interval_minutes == 0.5
    assert config.service_name == "billing"


def test_unknown_storage_mode_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown storage mode 'postgres'"):
        SentinelConfig.from_env({"EVENT_STORAGE": "postgres"})


@pytest.mark.parametrize("raw", ["abc", "0", "-3", "nan", "inf"])
def test_invalid_retention_is_rejected(raw: str) -> None:
    with pytest.raises(ValueError, match="SENTINEL_RETENTION_MINUTES"):
        SentinelConfig.from_env({"SENTINEL_RETENTION_MINUTES": raw})


def test_reads_process_environment_by_default(monkeypatch) -> None:
    monkeypatch.setenv("EVENT_STORAGE", "sqlite")
    assert SentinelConfig.from_env().storage_mode is StorageMode.SQLITE
