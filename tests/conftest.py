"""Shared test fixtures for all test modules."""

from collections.abc import AsyncGenerator, Callable
from datetime import timedelta
from pathlib import Path

import fakeredis
import pytest

from tenant_sentinel.adapters.storage.base import EventStorageBase
from tenant_sentinel.adapters.storage.in_memory import InMemoryEventStorage
from tenant_sentinel.adapters.storage.redis import RedisEventStorage
from tenant_sentinel.adapters.storage.sqlite import SQLiteEventStorage
from tenant_sentinel.core.models import Event, datetime_from_ms

try:
    import httpx
except ImportError:
    httpx = None

# 2024-05-01T12:00:00Z, a whole second so ms round-trips are exact.
FROZEN_NOW = 1_714_564_800.0


class FrozenClock:
    """Callable clock returning a fixed epoch time until advanced."""

    def __init__(self, now: float = FROZEN_NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> None:
        self.now += minutes * 60 + seconds


@pytest.fixture
def clock() -> FrozenClock:
    """Provide a frozen clock shared by stores and event factories."""
    return FrozenClock()


@pytest.fixture
def make_event(clock: FrozenClock) -> Callable[..., Event]:
    """Factory fixture building events relative to the frozen clock.

    Usage:
        event = make_event(minutes_ago=4, tenant_id="acme", status_code=500)
    """

    def _make_event(
        minutes_ago: float = 0,
        tenant_id: str = "tenant-a",
        endpoint: str = "/api/orders",
        method: str = "GET",
        status_code: int = 200,
        latency_ms: float | None = 100.0,
        service: str = "orders-service",
    ) -> Event:
        timestamp = datetime_from_ms(int(clock() * 1000)) - timedelta(
            minutes=minutes_ago
        )
        return Event(
            timestamp=timestamp,
            tenant_id=tenant_id,
            endpoint=endpoint,
            method=method,
            status_code=status_code,
            latency_ms=latency_ms,
            service=service,
        )

    return _make_event


@pytest.fixture
def sqlite_db_path(tmp_path: Path) -> str:
    """Provide a temporary database path for SQLite storage tests."""
    return str(tmp_path / "events.db")


@pytest.fixture
def fake_redis_server() -> fakeredis.FakeServer:
    """An isolated in-process Redis server."""
    return fakeredis.FakeServer()


@pytest.fixture
def fake_redis_client(fake_redis_server: fakeredis.FakeServer):
    """Asyncio client bound to the fake server, decoding responses to str."""
    return fakeredis.FakeAsyncRedis(server=fake_redis_server, decode_responses=True)


@pytest.fixture
async def memory_storage(clock: FrozenClock) -> AsyncGenerator[InMemoryEventStorage]:
    """In-memory event storage with 15-minute retention."""
    storage = InMemoryEventStorage(retention_minutes=15, clock=clock)
    yield storage
    await storage.close()


@pytest.fixture
async def redis_storage(
    clock: FrozenClock, fake_redis_client
) -> AsyncGenerator[RedisEventStorage]:
    """Redis event storage over fakeredis with 15-minute retention."""
    storage = RedisEventStorage(
        retention_minutes=15, client=fake_redis_client, clock=clock
    )
    yield storage
    await storage.close()


@pytest.fixture
async def sqlite_storage(
    clock: FrozenClock, sqlite_db_path: str
) -> AsyncGenerator[SQLiteEventStorage]:
    """File-backed SQLite event storage with 15-minute retention."""
    storage = SQLiteEventStorage(sqlite_db_path, retention_minutes=15, clock=clock)
    yield storage
    await storage.close()


@pytest.fixture(params=["memory", "redis", "sqlite"])
async def storage(
    request: pytest.FixtureRequest,
    clock: FrozenClock,
    fake_redis_client,
    sqlite_db_path: str,
) -> AsyncGenerator[EventStorageBase]:
    """Every event storage backend, for contract tests shared by all of them."""
    if request.param == "redis":
        store: EventStorageBase = RedisEventStorage(
            retention_minutes=15, client=fake_redis_client, clock=clock
        )
    elif request.param == "sqlite":
        store = SQLiteEventStorage(sqlite_db_path, retention_minutes=15, clock=clock)
    else:
        store = InMemoryEventStorage(retention_minutes=15, clock=clock)
    yield store
    await store.close()


# === ASGI Test Fixtures ===


@pytest.fixture
def asgi_scope():
    """Factory fixture for creating ASGI scope dicts."""

    def _scope(
        method: str = "GET",
        path: str = "/test",
        headers: list[tuple[bytes, bytes]] | None = None,
    ) -> dict:
        return {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": b"",
            "headers": headers or [],
        }

    return _scope


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            app = create_app(storage=memory_storage)
            async with asgi_test_client(app) as client:
                response = await client.get("/endpoint")
    """
    if httpx is None:
        pytest.skip("httpx not installed")

    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client
