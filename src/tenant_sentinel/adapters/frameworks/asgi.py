"""ASGI middleware that turns live traffic into tenant telemetry events.

Framework-agnostic: wraps any ASGI application (FastAPI, Starlette, Django
ASGI) and records one Event per HTTP request into an EventStoragePort.
"""

import fnmatch
import logging
import time
import uuid
from collections.abc import Callable, Coroutine, Sequence
from datetime import UTC, datetime
from typing import Any

from tenant_sentinel.core.models import DEFAULT_SERVICE, Event
from tenant_sentinel.core.ports import EventStoragePort

logger = logging.getLogger(__name__)

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]

TenantExtractor = Callable[[Scope], str | None]

UNKNOWN_TENANT = "unknown"
DEFAULT_TENANT_HEADERS = ("X-API-Key", "X-Tenant-ID")
# Sentinel's own ingestion and analytics routes are never tracked.
DEFAULT_EXCLUDE_PATHS = ("/api/v1/events*", "/api/v1/analytics*")


def _get_header(scope: Scope, header_name: str) -> str | None:
    """Return a request header value (case-insensitive), or None."""
    header_bytes = header_name.lower().encode()
    headers: list[tuple[bytes, bytes]] = scope.get("headers", [])
    for name, value in headers:
        if name.lower() == header_bytes:
            return str(value.decode("utf-8", errors="replace"))
    return None


def _extract_request_id(scope: Scope, header_name: str = "X-Request-ID") -> str:
    """Use the request ID header if present, otherwise generate one."""
    return _get_header(scope, header_name) or uuid.uuid4().hex


def header_tenant_extractor(
    header_names: Sequence[str] = DEFAULT_TENANT_HEADERS,
) -> TenantExtractor:
    """Build an extractor returning the first non-empty header of header_names."""

    def extract(scope: Scope) -> str | None:
        for header_name in header_names:
            value = _get_header(scope, header_name)
            if value:
                return value
        return None

    return extract


class TenantTelemetryMiddleware:
    """ASGI middleware recording one telemetry event per HTTP request.

    The tenant comes from ``X-API-Key`` then ``X-Tenant-ID`` unless a custom
    extractor is given; requests without one are attributed to "unknown".
    Storage failures are logged and never fail the wrapped request.
    """

    def __init__(
        self,
        app: ASGIApp,
        storage: EventStoragePort,
        service_name: str = DEFAULT_SERVICE,
        exclude_paths: Sequence[str] | None = None,
        tenant_extractor: TenantExtractor | None = None,
        request_id_header: str = "X-Request-ID",
        enabled: bool = True,
    ) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application to wrap.
            storage: Event store receiving the recorded events.
            service_name: Value of Event.service for recorded events.
            exclude_paths: Paths not to record. Supports exact matches and
                wildcard patterns (e.g., "/internal/*"). Defaults to the
                ingestion and analytics routes.
            tenant_extractor: Callable mapping the ASGI scope to a tenant id.
            request_id_header: Header carrying an upstream request id.
            enabled: When False, requests pass through untouched.
        """
        self.app = app
        self.storage = storage
        self.service_name = service_name
        self.exclude_paths = list(
            DEFAULT_EXCLUDE_PATHS if exclude_paths is None else exclude_paths
        )
        self.tenant_extractor = tenant_extractor or header_tenant_extractor()
        self.request_id_header = request_id_header
        self.enabled = enabled

    def _path_excluded(self, path: str) -> bool:
        """Check if path matches any pattern in exclude_paths."""
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.exclude_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI callable interface that processes requests through the wrapped app."""
        if (
            scope["type"] != "http"
            or not self.enabled
            or self._path_excluded(scope["path"])
        ):
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        captured: dict[str, Any] = {"status": None, "exception": None}

        async def wrapped_send(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                captured["status"] = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, wrapped_send)
        except Exception as e:
            captured["exception"] = e
            captured["status"] = 500

        latency_ms = (time.perf_counter() - start_time) * 1000
        await self._record_event(scope, captured["status"] or 0, latency_ms)
        if captured["exception"] is not None:
            raise captured["exception"]

    async def _record_event(
        self, scope: Scope, status_code: int, latency_ms: float
    ) -> None:
        event = Event(
            timestamp=datetime.now(UTC),
            tenant_id=self.tenant_extractor(scope) or UNKNOWN_TENANT,
            endpoint=scope["path"],
            method=scope.get("method", "UNKNOWN"),
            status_code=status_code,
            latency_ms=round(latency_ms, 3),
            service=self.service_name,
            request_id=_extract_request_id(scope, self.request_id_header),
        )
        try:
            await self.storage.add_event(event)
        except Exception:
            logger.exception(
                "Failed to record event for tenant %s on %s",
                event.tenant_id,
                event.endpoint,
            )
