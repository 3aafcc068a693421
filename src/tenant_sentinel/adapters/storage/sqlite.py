"""SQLite storage adapter for events."""

import asyncio
import logging
import sqlite3
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

import aiosqlite

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

DEFAULT_SQLITE_PATH = "sentinel.db"
BUSY_TIMEOUT_SECONDS = 10.0

_TABLE = "events"

_EVENTS_SCHEMA = """
CREATE TABLE IF NOT EXISTS events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp_ms INTEGER NOT NULL,
    payload TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_events_timestamp ON events(timestamp_ms);
CREATE TABLE IF NOT EXISTS collection_expiry (
    name TEXT PRIMARY KEY,
    expires_at_ms INTEGER NOT NULL
);
"""

_INSERT_EVENT = """
INSERT INTO events (timestamp_ms, payload) VALUES (?, ?)
"""

_UPSERT_EXPIRY = """
INSERT INTO collection_expiry (name, expires_at_ms) VALUES (?, ?)
ON CONFLICT(name) DO UPDATE SET expires_at_ms = excluded.expires_at_ms
"""

_SELECT_EXPIRY = """
SELECT expires_at_ms FROM collection_expiry WHERE name = ?
"""

_DELETE_EXPIRY = """
DELETE FROM collection_expiry WHERE name = ?
"""

_SELECT_EVENTS_SINCE = """
SELECT payload FROM events
WHERE timestamp_ms >= ?
ORDER BY timestamp_ms ASC, id ASC
"""

_SELECT_ALL_EVENTS = """
SELECT payload FROM events ORDER BY timestamp_ms ASC, id ASC
"""

_COUNT_EVENTS = """
SELECT COUNT(*) FROM events
"""

_DELETE_EVENTS_BEFORE = """
DELETE FROM events WHERE timestamp_ms < ?
"""

_DELETE_ALL_EVENTS = """
DELETE FROM events
"""


class AsyncConnectionManager:
    """Opens aiosqlite connections to one event database.

    File databases get a fresh connection per operation, in WAL mode with a
    busy timeout so concurrent writers queue instead of failing. A
    ":memory:" database lives only as long as its connection, so one
    connection is kept open until close().
    """

    def __init__(
        self, db_path: str, schema: str, busy_timeout: float = BUSY_TIMEOUT_SECONDS
    ) -> None:
        self._db_path = db_path
        self._schema = schema
        self._busy_timeout = busy_timeout
        self._initialized = False
        self._init_lock: asyncio.Lock | None = None
        self._persistent_conn: aiosqlite.Connection | None = None

    def _get_lock(self) -> asyncio.Lock:
        # Created lazily so the manager can be built outside a running loop.
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        return self._init_lock

    @property
    def _in_memory(self) -> bool:
        return self._db_path == ":memory:"

    def _connect(self) -> aiosqlite.Connection:
        return aiosqlite.connect(self._db_path, timeout=self._busy_timeout)

    async def _ensure_initialized(self) -> None:
        """Initialize database schema once."""
        if self._initialized:
            return
        async with self._get_lock():
            if self._initialized:
                return
            if self._in_memory:
                self._persistent_conn = await self._connect()
                await self._persistent_conn.executescript(self._schema)
            else:
                async with self._connect() as db:
                    await db.execute("PRAGMA journal_mode=WAL")
                    await db.executescript(self._schema)
            self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield a connection, closing it afterwards for file databases."""
        await self._ensure_initialized()
        if self._in_memory:
            if self._persistent_conn is None:
                raise RuntimeError("Memory database connection not initialized")
            yield self._persistent_conn
            return
        db = await self._connect()
        try:
            yield db
        finally:
            await db.close()

    async def close(self) -> None:
        """Close persistent connection (for :memory: databases)."""
        if self._persistent_conn is not None:
            await self._persistent_conn.close()
            self._persistent_conn = None
            self._initialized = False


class SQLiteEventStorage(EventStorageBase):
    """SQLite implementation of EventStoragePort.

    Durable across restarts without a network service. Events are stored as
    serialized payloads next to an indexed timestamp column, so malformed
    rows are skipped on read the same way as in the Redis store. The
    collection-wide safety-net expiry is kept in ``collection_expiry`` and
    enforced at the start of every operation.

    Args:
        db_path: Database file path, or ":memory:".
        retention_minutes: Maximum event age kept by cleanup().
        cleanup_interval_minutes: Delay between background sweeps.
        clock: Returns the current time in epoch seconds.
        start_sweeper: Start the retention sweeper on construction.
    """

    def __init__(
        self,
        db_path: str = DEFAULT_SQLITE_PATH,
        retention_minutes: float = DEFAULT_RETENTION_MINUTES,
        cleanup_interval_minutes: float = DEFAULT_CLEANUP_INTERVAL_MINUTES,
        clock: Clock | None = None,
        start_sweeper: bool = True,
    ) -> None:
        self._db_path = db_path
        self._manager = AsyncConnectionManager(db_path, _EVENTS_SCHEMA)
        super().__init__(
            retention_minutes, cleanup_interval_minutes, clock, start_sweeper
        )

    @property
    def db_path(self) -> str:
        return self._db_path

    async def _expire_if_stale(self, db: aiosqlite.Connection) -> None:
        async with db.execute(_SELECT_EXPIRY, (_TABLE,)) as cursor:
            row = await cursor.fetchone()
        if row is None or row[0] > self._now_ms():
            return
        logger.info("Event table %s expired after inactivity; purging", _TABLE)
        await db.execute(_DELETE_ALL_EVENTS)
        await db.execute(_DELETE_EXPIRY, (_TABLE,))
        await db.commit()

    def _decode_rows(self, rows: Iterable[sqlite3.Row | tuple[str]]) -> list[Event]:
        events: list[Event] = []
        for row in rows:
            try:
                events.append(decode_event(row[0]))
            except DeserializationError as exc:
                logger.warning("Skipping malformed event in %s: %s", _TABLE, exc)
        return events

    # --- Write paths: failures propagate as StorageError ---

    async def add_event(self, event: Event) -> None:
        """Insert the event and refresh the safety-net expiry."""
        self._ensure_sweeper()
        expires_at = self._now_ms() + self.expiry_seconds * 1000
        try:
            async with self._manager.connection() as db:
                await self._expire_if_stale(db)
                await db.execute(
                    _INSERT_EVENT, (event.timestamp_ms, encode_event(event))
                )
                await db.execute(_UPSERT_EXPIRY, (_TABLE, expires_at))
                await db.commit()
        except (sqlite3.Error, OSError) as exc:
            logger.error("add_event failed for %s: %s", self._db_path, exc)
            raise StorageError("add_event", self._db_path, str(exc)) from exc

    async def cleanup(self) -> int:
        """Delete rows with timestamp strictly below the retention cutoff."""
        cutoff = self._retention_cutoff_ms()
        try:
            async with self._manager.connection() as db:
                await self._expire_if_stale(db)
                cursor = await db.execute(_DELETE_EVENTS_BEFORE, (cutoff,))
                removed = cursor.rowcount
                await db.commit()
        except (sqlite3.Error, OSError) as exc:
            logger.error("cleanup failed for %s: %s", self._db_path, exc)
            raise StorageError("cleanup", self._db_path, str(exc)) from exc
        if removed:
            logger.info(
                "Cleaned up %d old events (retention: %smin)",
                removed,
                self.retention_ms / 60_000,
            )
        return removed

    async def clear(self) -> None:
        """Delete all rows."""
        try:
            async with self._manager.connection() as db:
                await db.execute(_DELETE_ALL_EVENTS)
                await db.execute(_DELETE_EXPIRY, (_TABLE,))
                await db.commit()
        except (sqlite3.Error, OSError) as exc:
            logger.error("clear failed for %s: %s", self._db_path, exc)
            raise StorageError("clear", self._db_path, str(exc)) from exc

    # --- Read paths: failures degrade to empty results ---

    async def get_events_in_window(self, window_minutes: float) -> list[Event]:
        """Return rows with timestamp >= now - window, oldest first."""
        self._ensure_sweeper()
        cutoff = self._window_cutoff_ms(window_minutes)
        try:
            async with self._manager.connection() as db:
                await self._expire_if_stale(db)
                async with db.execute(_SELECT_EVENTS_SINCE, (cutoff,)) as cursor:
                    rows = await cursor.fetchall()
        except (sqlite3.Error, OSError) as exc:
            logger.error("get_events_in_window failed for %s: %s", self._db_path, exc)
            return []
        return self._decode_rows(rows)

    async def get_all_events(self) -> list[Event]:
        """Return every row, oldest first."""
        self._ensure_sweeper()
        try:
            async with self._manager.connection() as db:
                await self._expire_if_stale(db)
                async with db.execute(_SELECT_ALL_EVENTS) as cursor:
                    rows = await cursor.fetchall()
        except (sqlite3.Error, OSError) as exc:
            logger.error("get_all_events failed for %s: %s", self._db_path, exc)
            return []
        return self._decode_rows(rows)

    async def get_event_count(self) -> int:
        """Return the number of rows."""
        self._ensure_sweeper()
        try:
            async with self._manager.connection() as db:
                await self._expire_if_stale(db)
                async with db.execute(_COUNT_EVENTS) as cursor:
                    row = await cursor.fetchone()
        except (sqlite3.Error, OSError) as exc:
            logger.error("get_event_count failed for %s: %s", self._db_path, exc)
            return 0
        return row[0] if row else 0

    async def _release(self) -> None:
        await self._manager.close()
