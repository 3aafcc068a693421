"""FastAPI adapter: ingestion, analytics and debug endpoints."""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from tenant_sentinel.adapters.frameworks.asgi import TenantTelemetryMiddleware
from tenant_sentinel.adapters.frameworks.query_params import (
    DEFAULT_DEBUG_WINDOW_MINUTES,
    _parse_limit_param,
    _parse_window_param,
    parse_query_string,
)
from tenant_sentinel.adapters.storage.factory import create_event_storage_from_config
from tenant_sentinel.config import SentinelConfig
from tenant_sentinel.core.aggregation import (
    aggregate_error_metrics,
    aggregate_latency_metrics,
    group_events_by_tenant,
)
from tenant_sentinel.core.encoding.ndjson import encode_ndjson
from tenant_sentinel.core.errors import StorageError, ValidationError
from tenant_sentinel.core.models import Event
from tenant_sentinel.core.ports import EventStoragePort

logger = logging.getLogger(__name__)

STATS_WINDOW_MINUTES = 5


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _query_params(request: Request) -> dict[str, list[str]]:
    return parse_query_string(request.url.query)


def create_sentinel_router(storage: EventStoragePort) -> APIRouter:
    """Create a FastAPI router with the ingestion, analytics and debug endpoints.

    Args:
        storage: Event store shared by every endpoint.

    Returns:
        APIRouter with the /api/v1 endpoints configured.
    """
    router = APIRouter()

    @router.post("/api/v1/events", status_code=201)
    async def ingest_event(request: Request) -> Response:
        """Validate a request event and store it."""
        try:
            payload: Any = json.loads(await request.body())
            event = Event.from_payload(payload)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Rejected event: body is not valid JSON")
            return _error(400, "Request body must be valid JSON")
        except ValidationError as exc:
            logger.warning("Rejected event: %s", exc)
            return _error(400, str(exc))

        logger.debug(
            "Event received tenant=%s endpoint=%s status=%s latency=%sms",
            event.tenant_id,
            event.endpoint,
            event.status_code,
            event.latency_ms,
        )
        try:
            await storage.add_event(event)
        except StorageError:
            return _error(500, "Failed to store event")
        return JSONResponse(status_code=201, content={"status": "received"})

    @router.get("/api/v1/analytics/top-tenants/errors")
    async def top_tenants_by_errors(request: Request) -> Response:
        """Tenants ranked by error rate over a trailing window."""
        params = _query_params(request)
        try:
            window = _parse_window_param(params)
            limit = _parse_limit_param(params)
        except ValidationError as exc:
            return _error(400, str(exc))
        try:
            tenants = await aggregate_error_metrics(storage, window, limit)
        except Exception:
            logger.exception("Error analytics failed")
            return _error(500, "Failed to aggregate error metrics")
        return JSONResponse(
            {
                "window_minutes": window,
                "tenants": [tenant.to_dict() for tenant in tenants],
            }
        )

    @router.get("/api/v1/analytics/top-tenants/latency")
    async def top_tenants_by_latency(request: Request) -> Response:
        """Tenants ranked by p95 latency over a trailing window."""
        params = _query_params(request)
        try:
            window = _parse_window_param(params)
            limit = _parse_limit_param(params)
        except ValidationError as exc:
            return _error(400, str(exc))
        try:
            tenants = await aggregate_latency_metrics(storage, window, limit)
        except Exception:
            logger.exception("Latency analytics failed")
            return _error(500, "Failed to aggregate latency metrics")
        return JSONResponse(
            {
                "window_minutes": window,
                "tenants": [tenant.to_dict() for tenant in tenants],
            }
        )

    @router.get("/api/v1/debug/events")
    async def debug_events(request: Request) -> Response:
        """Stored events in a window, as JSON or NDJSON (format=ndjson)."""
        params = _query_params(request)
        try:
            window = _parse_window_param(params, DEFAULT_DEBUG_WINDOW_MINUTES)
        except ValidationError as exc:
            return _error(400, str(exc))
        events = await storage.get_events_in_window(window)
        if params.get("format", [""])[0].lower() == "ndjson":
            return Response(
                content=encode_ndjson(events), media_type="application/x-ndjson"
            )
        total = await storage.get_event_count()
        return JSONResponse(
            {
                "window_minutes": window,
                "events_in_window": len(events),
                "total_events": total,
                "events": [event.to_dict() for event in events],
            }
        )

    @router.get("/api/v1/debug/stats")
    async def debug_stats() -> Response:
        """Buffer totals and the per-tenant distribution of recent events."""
        total = await storage.get_event_count()
        recent = await storage.get_events_in_window(STATS_WINDOW_MINUTES)
        distribution = {
            tenant_id: len(events)
            for tenant_id, events in group_events_by_tenant(recent).items()
        }
        return JSONResponse(
            {
                "total_events": total,
                "events_last_5min": len(recent),
                "unique_tenants_last_5min": len(distribution),
                "tenant_distribution": distribution,
            }
        )

    return router


def create_app(
    config: SentinelConfig | None = None,
    storage: EventStoragePort | None = None,
    instrument: bool = False,
) -> FastAPI:
    """Create the Sentinel FastAPI application.

    The event store is built once here (from ``config`` unless one is passed
    in), shared by every endpoint, and closed by the application lifespan.

    Args:
        config: Settings; loaded from the environment when omitted.
        storage: Pre-built event store, used instead of the configured one.
        instrument: Wrap the app in TenantTelemetryMiddleware so its own
            traffic (excluding ingestion and analytics) is recorded.

    Returns:
        FastAPI application.
    """
    settings = config if config is not None else SentinelConfig.from_env()
    store = (
        storage
        if storage is not None
        else create_event_storage_from_config(settings, start_sweeper=False)
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        store.start_cleanup()
        try:
            yield
        finally:
            await store.close()

    app = FastAPI(title="Tenant Sentinel", lifespan=lifespan)
    app.state.storage = store
    app.state.config = settings
    app.include_router(create_sentinel_router(store))
    if instrument:
        app.add_middleware(
            TenantTelemetryMiddleware,
            storage=store,
            service_name=settings.service_name,
        )
    return app
