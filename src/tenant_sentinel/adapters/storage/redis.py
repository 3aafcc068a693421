"""Redis storage adapter for events.

Events live in one sorted set: each member is a serialized event and its
score is the event timestamp in epoch milliseconds, so window queries and
retention are score-range commands.
"""

import logging
import uuid
from collections.abc import Iterable

from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from tenant_sentinel.adapters.storage.base import (
    DEFAULT_CLEANUP_INTERVAL_MINUTES,
    DEFAULT_RETENTION_MINUTES,
    Clock,
    EventStorageBase,
)
from tenant_sentinel.core.encoding.ndjson import decode_event, encode_event
from tenant_sentinel.core.errors import DeserializationError, StorageError
from tenant_sentinel.core.models import Event

logger = logging.getLogger(__name__)

DEFAULT_REDIS_URL = "redis://localhost:6379"
DEFAULT_REDIS_KEY = "sentinel:events"

# Reconnect backoff: 0.1s doubling up to 3s per attempt, 10 attempts.
RECONNECT_BACKOFF_BASE = 0.1
RECONNECT_BACKOFF_CAP = 3.0
RECONNECT_ATTEMPTS = 10


def create_redis_client(
    url: str = DEFAULT_REDIS_URL,
    socket_timeout: float = 5.0,
    socket_connect_timeout: float = 5.0,
    retry_attempts: int = RECONNECT_ATTEMPTS,
) -> Redis:
    """Build an asyncio Redis client with bounded reconnection.

    The client connects lazily and reconnects on the next command after a
    dropped connection, retrying with capped exponential backoff. Once the
    attempts run out the command raises and the store degrades per its
    read/write rules; later commands try again.
    """
    retry = Retry(
        ExponentialBackoff(cap=RECONNECT_BACKOFF_CAP, base=RECONNECT_BACKOFF_BASE),
        retry_attempts,
    )
    return Redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_connect_timeout,
        retry=retry,
        retry_on_error=[RedisConnectionError, RedisTimeoutError],
        health_check_interval=30,
    )


class RedisEventStorage(EventStorageBase):
    """Redis implementation of EventStoragePort.

    Durable across process restarts. Insert, range and delete are single
    sorted-set commands, atomic server-side, so concurrent coroutines need
    no client-side lock.

    Args:
        retention_minutes: Maximum event age kept by cleanup().
        cleanup_interval_minutes: Delay between background sweeps.
        redis_url: Connection URL, used when no client is given.
        key: Sorted-set key holding the events.
        client: Pre-built asyncio client. The store does not close it.
        clock: Returns the current time in epoch seconds.
        start_sweeper: Start the retention sweeper on construction.
    """

    def __init__(
        self,
        retention_minutes: float = DEFAULT_RETENTION_MINUTES,
        cleanup_interval_minutes: float = DEFAULT_CLEANUP_INTERVAL_MINUTES,
        redis_url: str = DEFAULT_REDIS_URL,
        key: str = DEFAULT_REDIS_KEY,
        client: Redis | None = None,
        clock: Clock | None = None,
        start_sweeper: bool = True,
    ) -> None:
        self._key = key
        self._owns_client = client is None
        self._client: Redis = (
            client if client is not None else create_redis_client(redis_url)
        )
        super().__init__(
            retention_minutes, cleanup_interval_minutes, clock, start_sweeper
        )

    @property
    def key(self) -> str:
        return self._key

    def _decode_members(self, members: Iterable[str | bytes]) -> list[Event]:
        events: list[Event] = []
        for member in members:
            try:
                events.append(decode_event(member))
            except DeserializationError as exc:
                logger.warning("Skipping malformed event in %s: %s", self._key, exc)
        return events

    # --- Write paths: failures propagate as StorageError ---

    async def add_event(self, event: Event) -> None:
        """Add the event and refresh the safety-net expiry of the set.

        Each member carries a fresh nonce, so re-adding an identical event
        stores a second member instead of overwriting the first.
        """
        self._ensure_sweeper()
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                member = encode_event(event, nonce=uuid.uuid4().hex)
                pipe.zadd(self._key, {member: event.timestamp_ms})
                pipe.expire(self._key, self.expiry_seconds)
                await pipe.execute()
        except RedisError as exc:
            logger.error("add_event failed for %s: %s", self._key, exc)
            raise StorageError("add_event", self._key, str(exc)) from exc

    async def cleanup(self) -> int:
        """Remove members scored strictly below the retention cutoff."""
        cutoff = self._retention_cutoff_ms()
        try:
            removed = await self._client.zremrangebyscore(
                self._key, "-inf", f"({cutoff}"
            )
        except RedisError as exc:
            logger.error("cleanup failed for %s: %s", self._key, exc)
            raise StorageError("cleanup", self._key, str(exc)) from exc
        if removed:
            logger.info(
                "Cleaned up %d old events (retention: %smin)",
                removed,
                self.retention_ms / 60_000,
            )
        return int(removed)

    async def clear(self) -> None:
        """Delete the whole sorted set."""
        try:
            await self._client.delete(self._key)
        except RedisError as exc:
            logger.error("clear failed for %s: %s", self._key, exc)
            raise StorageError("clear", self._key, str(exc)) from exc

    # --- Read paths: failures degrade to empty results ---

    async def get_events_in_window(self, window_minutes: float) -> list[Event]:
        """Return events scored >= now - window, oldest first."""
        self._ensure_sweeper()
        cutoff = self._window_cutoff_ms(window_minutes)
        try:
            members = await self._client.zrangebyscore(self._key, cutoff, "+inf")
        except RedisError as exc:
            logger.error("get_events_in_window failed for %s: %s", self._key, exc)
            return []
        return self._decode_members(members)

    async def get_all_events(self) -> list[Event]:
        """Return every member, oldest first."""
        self._ensure_sweeper()
        try:
            members = await self._client.zrange(self._key, 0, -1)
        except RedisError as exc:
            logger.error("get_all_events failed for %s: %s", self._key, exc)
            return []
        return self._decode_members(members)

    async def get_event_count(self) -> int:
        """Return the cardinality of the sorted set."""
        self._ensure_sweeper()
        try:
            return int(await self._client.zcard(self._key))
        except RedisError as exc:
            logger.error("get_event_count failed for %s: %s", self._key, exc)
            return 0

    async def _release(self) -> None:
        if self._owns_client:
            await self._client.aclose()
