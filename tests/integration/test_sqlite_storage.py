"""Tests for the SQLite event storage adapter."""

import aiosqlite
import pytest

from tenant_sentinel.adapters.storage.sqlite import SQLiteEventStorage
from tenant_sentinel.core.errors import StorageError

pytestmark = [pytest.mark.storage, pytest.mark.integration, pytest.mark.tier(2)]


class TestDurability:
    """Events persist in the database file."""

    async def test_events_survive_reopening_the_file(
        self, clock, sqlite_db_path, make_event
    ) -> None:
        first = SQLiteEventStorage(sqlite_db_path, clock=clock, start_sweeper=False)
        event = make_event(minutes_ago=2, tenant_id="durable")
        await first.add_event(event)
        await first.close()

        second = SQLiteEventStorage(sqlite_db_path, clock=clock, start_sweeper=False)
        try:
            assert await second.get_all_events() == [event]
        finally:
            await second.close()

    async def test_in_memory_database_keeps_events_until_closed(
        self, clock, make_event
    ) -> None:
        storage = SQLiteEventStorage(":memory:", clock=clock, start_sweeper=False)
        try:
            await storage.add_event(make_event(tenant_id="a"))
            await storage.add_event(make_event(tenant_id="b"))

            assert await storage.get_event_count() == 2
        finally:
            await storage.close()


class TestMalformedRows:
    """Corrupt rows are skipped, never raised."""

    async def test_malformed_rows_are_skipped(
        self, sqlite_storage, sqlite_db_path, clock, make_event, caplog
    ) -> None:
        good = make_event(minutes_ago=1, tenant_id="good")
        await sqlite_storage.add_event(good)
        async with aiosqlite.connect(sqlite_db_path) as db:
            await db.execute(
                "INSERT INTO events (timestamp_ms, payload) VALUES (?, ?)",
                (int(clock() * 1000) - 1000, "{not json"),
            )
            await db.commit()

        assert await sqlite_storage.get_events_in_window(5) == [good]
        assert await sqlite_storage.get_event_count() == 2
        assert "Skipping malformed event" in caplog.text


class TestCollectionExpiry:
    """The whole table is purged after twice the retention without writes."""

    async def test_table_purged_after_expiry(self, clock, sqlite_db_path, make_event):
        storage = SQLiteEventStorage(
            sqlite_db_path, retention_minutes=15, clock=clock, start_sweeper=False
        )
        try:
            await storage.add_event(make_event())
            clock.advance(minutes=29)
            assert await storage.get_event_count() == 1

            clock.advance(minutes=2)
            assert await storage.get_event_count() == 0
        finally:
            await storage.close()

    async def test_write_refreshes_expiry(self, clock, sqlite_db_path, make_event):
        storage = SQLiteEventStorage(
            sqlite_db_path, retention_minutes=15, clock=clock, start_sweeper=False
        )
        try:
            await storage.add_event(make_event())
            clock.advance(minutes=20)
            await storage.add_event(make_event())
            clock.advance(minutes=20)

            assert await storage.get_event_count() == 2
        finally:
            await storage.close()


class TestUnavailableDatabase:
    """Writes fail loudly and reads degrade when the file cannot be opened."""

    @pytest.fixture
    async def broken_storage(self, tmp_path, clock):
        # A directory cannot be opened as a database file.
        storage = SQLiteEventStorage(str(tmp_path), clock=clock, start_sweeper=False)
        yield storage
        await storage.close()

    async def test_add_event_raises_storage_error(
        self, broken_storage, make_event
    ) -> None:
        with pytest.raises(StorageError) as exc_info:
            await broken_storage.add_event(make_event())

        assert exc_info.value.operation == "add_event"

    async def test_reads_degrade_to_empty(self, broken_storage) -> None:
        assert await broken_storage.get_events_in_window(5) == []
        assert await broken_storage.get_all_events() == []
        assert await broken_storage.get_event_count() == 0

    async def test_cleanup_and_clear_raise_storage_error(self, broken_storage) -> None:
        with pytest.raises(StorageError, match="cleanup failed"):
            await broken_storage.cleanup()
        with pytest.raises(StorageError, match="clear failed"):
            await broken_storage.clear()
