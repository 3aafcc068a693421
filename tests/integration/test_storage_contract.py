"""Behavioral contract shared by every event storage backend.

Each test runs against the in-memory, Redis (fakeredis) and SQLite stores
through the parametrized ``storage`` fixture.
"""

import asyncio

import pytest

from tenant_sentinel.core.aggregation import aggregate_error_metrics
from tenant_sentinel.core.ports import EventStoragePort

pytestmark = [pytest.mark.storage, pytest.mark.integration, pytest.mark.tier(2)]


async def test_implements_event_storage_port(storage) -> None:
    assert isinstance(storage, EventStoragePort)


async def test_added_event_round_trips(storage, make_event) -> None:
    event = make_event(
        minutes_ago=2,
        tenant_id="acme",
        endpoint="/api/checkout",
        method="POST",
        status_code=502,
        latency_ms=731.25,
        service="checkout",
    )

    await storage.add_event(event)
    [stored] = await storage.get_events_in_window(5)

    assert stored == event
    assert stored.timestamp_ms == event.timestamp_ms


async def test_window_includes_recent_and_excludes_older_events(
    storage, make_event
) -> None:
    recent = make_event(minutes_ago=4, tenant_id="recent")
    older = make_event(minutes_ago=6, tenant_id="older")
    await storage.add_event(recent)
    await storage.add_event(older)

    result = await storage.get_events_in_window(5)

    assert [e.tenant_id for e in result] == ["recent"]


async def test_window_lower_bound_is_inclusive(storage, make_event) -> None:
    await storage.add_event(make_event(minutes_ago=5, tenant_id="edge"))

    assert [e.tenant_id for e in await storage.get_events_in_window(5)] == ["edge"]


async def test_zero_window_excludes_past_events(storage, make_event) -> None:
    await storage.add_event(make_event(minutes_ago=0.01))

    assert await storage.get_events_in_window(0) == []


async def test_events_are_returned_oldest_first(storage, make_event) -> None:
    for minutes_ago in (1, 3, 2):
        await storage.add_event(
            make_event(minutes_ago=minutes_ago, tenant_id=f"t{minutes_ago}")
        )

    window = await storage.get_events_in_window(5)
    everything = await storage.get_all_events()

    assert [e.tenant_id for e in window] == ["t3", "t2", "t1"]
    assert [e.tenant_id for e in everything] == ["t3", "t2", "t1"]


async def test_duplicate_timestamps_and_content_are_kept(storage, make_event) -> None:
    first = make_event(minutes_ago=1)
    twin = make_event(minutes_ago=1)

    await storage.add_event(first)
    await storage.add_event(twin)

    assert await storage.get_event_count() == 2
    assert len(await storage.get_events_in_window(5)) == 2


async def test_re_adding_the_same_event_stores_it_twice(storage, make_event) -> None:
    event = make_event(minutes_ago=1)

    await storage.add_event(event)
    await storage.add_event(event)

    assert await storage.get_event_count() == 2
    assert await storage.get_events_in_window(5) == [event, event]


async def test_events_without_tenant_are_stored_and_returned(
    storage, make_event
) -> None:
    anonymous = make_event(minutes_ago=1, tenant_id="")

    await storage.add_event(anonymous)

    assert await storage.get_event_count() == 1
    assert await storage.get_events_in_window(5) == [anonymous]
    assert await storage.get_all_events() == [anonymous]


async def test_cleanup_removes_events_past_retention(
    clock, storage, make_event
) -> None:
    await storage.add_event(make_event(minutes_ago=20, tenant_id="expired"))
    await storage.add_event(make_event(minutes_ago=1, tenant_id="fresh"))

    removed = await storage.cleanup()

    assert removed == 1
    assert [e.tenant_id for e in await storage.get_all_events()] == ["fresh"]


async def test_cleanup_on_empty_store_removes_nothing(storage) -> None:
    assert await storage.cleanup() == 0


async def test_clear_is_idempotent(storage, make_event) -> None:
    await storage.add_event(make_event())

    await storage.clear()
    assert await storage.get_event_count() == 0
    await storage.clear()
    assert await storage.get_event_count() == 0


async def test_count_matches_stored_events(storage, make_event) -> None:
    for i in range(4):
        await storage.add_event(make_event(minutes_ago=i))
    assert await storage.get_event_count() == 4


async def test_concurrent_inserts_are_all_stored(storage, make_event) -> None:
    events = [make_event(tenant_id=f"tenant-{i % 3}") for i in range(30)]

    await asyncio.gather(*(storage.add_event(event) for event in events))

    assert await storage.get_event_count() == 30


async def test_aggregation_sees_the_same_results_on_every_backend(
    storage, make_event
) -> None:
    for status in (200, 200, 500):
        await storage.add_event(
            make_event(minutes_ago=1, tenant_id="acme", status_code=status)
        )
    await storage.add_event(make_event(minutes_ago=1, tenant_id="", status_code=500))

    [metrics] = await aggregate_error_metrics(storage, 5, 10)

    assert metrics.tenant_id == "acme"
    assert metrics.total_requests == 3
    assert metrics.error_count == 1


async def test_close_stops_the_sweeper(storage) -> None:
    storage.start_cleanup()
    assert storage.sweeper.running is True

    await storage.close()

    assert storage.sweeper.running is False
