"""Aggregation engine for per-tenant error and latency metrics."""

import math
from collections.abc import Iterable, Sequence

from tenant_sentinel.core.models import Event, TenantErrorMetrics, TenantLatencyMetrics
from tenant_sentinel.core.ports import EventStoragePort

P95 = 0.95


def group_events_by_tenant(events: Iterable[Event]) -> dict[str, list[Event]]:
    """Group events by tenant_id, preserving first-seen tenant order.

    Events with an empty tenant_id are skipped.
    """
    grouped: dict[str, list[Event]] = {}
    for event in events:
        if not event.tenant_id:
            continue
        grouped.setdefault(event.tenant_id, []).append(event)
    return grouped


def is_valid_latency(value: object) -> bool:
    """Return True for a real, non-negative, non-NaN number."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return not math.isnan(value) and value >= 0


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def percentile_95(sorted_values: Sequence[float]) -> float:
    """Nearest-rank 95th percentile of an ascending sequence.

    Uses index ceil(n * 0.95) - 1, so a single value is its own p95.
    """
    if not sorted_values:
        return 0.0
    index = math.ceil(len(sorted_values) * P95) - 1
    return sorted_values[max(index, 0)]


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up (50.5 -> 51)."""
    return math.floor(value + 0.5)


def compute_error_metrics(
    events: Iterable[Event], limit: int
) -> list[TenantErrorMetrics]:
    """Rank tenants by error rate, then by absolute error count."""
    metrics: list[TenantErrorMetrics] = []
    for tenant_id, tenant_events in group_events_by_tenant(events).items():
        total = len(tenant_events)
        errors = sum(1 for event in tenant_events if event.is_error)
        rate = errors / total if total > 0 else 0.0
        metrics.append(
            TenantErrorMetrics(
                tenant_id=tenant_id,
                total_requests=total,
                error_count=errors,
                error_rate=rate,
            )
        )
    metrics.sort(key=lambda m: (m.error_rate, m.error_count), reverse=True)
    return metrics[:limit]


def compute_latency_metrics(
    events: Iterable[Event], limit: int
) -> list[TenantLatencyMetrics]:
    """Rank tenants by p95 latency.

    Tenants without a single valid latency are left out, but total_requests
    counts every event of the tenants that remain.
    """
    metrics: list[TenantLatencyMetrics] = []
    for tenant_id, tenant_events in group_events_by_tenant(events).items():
        latencies = sorted(
            float(event.latency_ms)  # type: ignore[arg-type]
            for event in tenant_events
            if is_valid_latency(event.latency_ms)
        )
        if not latencies:
            continue
        metrics.append(
            TenantLatencyMetrics(
                tenant_id=tenant_id,
                total_requests=len(tenant_events),
                mean_latency=round_half_up(mean(latencies)),
                p95_latency=round_half_up(percentile_95(latencies)),
            )
        )
    # list.sort is stable, so equal p95 keeps first-seen tenant order.
    metrics.sort(key=lambda m: m.p95_latency, reverse=True)
    return metrics[:limit]


async def aggregate_error_metrics(
    storage: EventStoragePort, window_minutes: float, limit: int
) -> list[TenantErrorMetrics]:
    """Top tenants by error rate over the trailing window.

    Args:
        storage: Event store to read the window from.
        window_minutes: Trailing window length in minutes.
        limit: Maximum number of tenants to return.

    Returns:
        Tenants sorted by error_rate descending, ties broken by error_count
        descending. Empty if the window holds no events.
    """
    events = await storage.get_events_in_window(window_minutes)
    if not events:
        return []
    return compute_error_metrics(events, limit)


async def aggregate_latency_metrics(
    storage: EventStoragePort, window_minutes: float, limit: int
) -> list[TenantLatencyMetrics]:
    """Top tenants by p95 latency over the trailing window.

    Args:
        storage: Event store to read the window from.
        window_minutes: Trailing window length in minutes.
        limit: Maximum number of tenants to return.

    Returns:
        Tenants sorted by p95_latency descending. Empty if the window holds
        no events or no tenant has a valid latency.
    """
    events = await storage.get_events_in_window(window_minutes)
    if not events:
        return []
    return compute_latency_metrics(events, limit)
