"""Core domain models for tenant telemetry."""

import uuid
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from tenant_sentinel.core.errors import DeserializationError, ValidationError

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)

REQUIRED_FIELDS = ("tenant_id", "timestamp", "endpoint")

DEFAULT_METHOD = "UNKNOWN"
DEFAULT_SERVICE = "unknown-service"


def _new_request_id() -> str:
    return uuid.uuid4().hex


def datetime_from_ms(timestamp_ms: int | float) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return _EPOCH + timedelta(milliseconds=timestamp_ms)


def datetime_to_ms(value: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds.

    Naive datetimes are interpreted as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return (value - _EPOCH) // _ONE_MS


def parse_timestamp(raw: Any) -> datetime:
    """Parse an ISO-8601 string or epoch milliseconds into a UTC datetime.

    Raises:
        ValidationError: If the value is neither form.
    """
    if isinstance(raw, datetime):
        return raw if raw.tzinfo is not None else raw.replace(tzinfo=UTC)
    if isinstance(raw, bool):
        raise ValidationError(f"Invalid timestamp: {raw!r}")
    if isinstance(raw, int | float):
        try:
            return datetime_from_ms(raw)
        except (OverflowError, ValueError) as exc:
            raise ValidationError(f"Invalid timestamp: {raw!r}") from exc
    if isinstance(raw, str):
        text = raw.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValidationError(f"Invalid timestamp: {raw!r}") from exc
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        try:
            return parsed.astimezone(UTC)
        except (OverflowError, ValueError) as exc:
            raise ValidationError(f"Invalid timestamp: {raw!r}") from exc
    raise ValidationError(f"Invalid timestamp: {raw!r}")


def format_timestamp(value: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with millisecond precision."""
    utc = value.astimezone(UTC) if value.tzinfo else value.replace(tzinfo=UTC)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _coerce_latency(raw: Any) -> float | None:
    # Invalid latencies are kept as None; aggregation skips them.
    if isinstance(raw, bool) or not isinstance(raw, int | float):
        return None
    return float(raw)


def _coerce_status_code(raw: Any) -> int:
    if raw is None:
        return 0
    if isinstance(raw, bool):
        raise ValidationError(f"Invalid status_code: {raw!r}")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str):
        digits = raw.strip()
        if digits[:1] in ("+", "-"):
            digits = digits[1:]
        if digits.isdecimal():
            return int(raw)
    raise ValidationError(f"Invalid status_code: {raw!r}")


def _stored_str(data: Mapping[str, Any], name: str, default: str | None = None) -> str:
    value = data.get(name, default)
    if not isinstance(value, str):
        raise DeserializationError(f"Stored event field {name!r} must be a string")
    return value

@dataclass(frozen=True)
class Event:
    """A single observed request.

    Attributes:
        timestamp: When the request was observed (aware UTC datetime).
        tenant_id: Tenant the request is attributed to.
        endpoint: Request path.
        method: HTTP verb.
        status_code: HTTP response status.
        latency_ms: Request latency in milliseconds, or None if unknown.
        service: Label of the service that observed the request.
        request_id: Unique id distinguishing events with identical content.
    """

    timestamp: datetime
    tenant_id: str
    endpoint: str
    method: str = DEFAULT_METHOD
    status_code: int = 0
    latency_ms: float | None = None
    service: str = DEFAULT_SERVICE
    request_id: str = field(default_factory=_new_request_id)

    @property
    def timestamp_ms(self) -> int:
        """Timestamp in epoch milliseconds, the ordering score in every store."""
        return datetime_to_ms(self.timestamp)

    @property
    def is_error(self) -> bool:
        return self.status_code >= 500

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible dict of the event."""
        latency = self.latency_ms
        if latency is not None and latency != latency:
            latency = None
        return {
            "timestamp": format_timestamp(self.timestamp),
            "tenant_id": self.tenant_id,
            "endpoint": self.endpoint,
            "method": self.method,
            "status_code": self.status_code,
            "latency_ms": latency,
            "service": self.service,
            "request_id": self.request_id,
        }

    @classmethod
    def from_payload(cls, payload: Any) -> "Event":
        """Build an event from an ingestion payload.

        Args:
            payload: Mapping decoded from a JSON request body.

        Returns:
            The validated Event.

        Raises:
            ValidationError: If the payload is not a mapping, a required
                field is missing or empty, or a field has the wrong type.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("Event payload must be a JSON object")
        missing = [name for name in REQUIRED_FIELDS if not payload.get(name)]
        if missing:
            raise ValidationError(
                "Missing required fields: " + ", ".join(REQUIRED_FIELDS)
            )
        tenant_id = payload["tenant_id"]
        endpoint = payload["endpoint"]
        if not isinstance(tenant_id, str) or not isinstance(endpoint, str):
            raise ValidationError("tenant_id and endpoint must be strings")

        kwargs: dict[str, Any] = {
            "timestamp": parse_timestamp(payload["timestamp"]),
            "tenant_id": tenant_id,
            "endpoint": endpoint,
            "method": str(payload.get("method") or DEFAULT_METHOD),
            "status_code": _coerce_status_code(payload.get("status_code")),
            "latency_ms": _coerce_latency(payload.get("latency_ms")),
            "service": str(payload.get("service") or DEFAULT_SERVICE),
        }
        request_id = payload.get("request_id")
        if isinstance(request_id, str) and request_id:
            kwargs["request_id"] = request_id
        return cls(**kwargs)

    @classmethod
    def from_dict(cls, data: Any) -> "Event":
        """Rebuild an event from the dict produced by to_dict.

        Unlike from_payload this applies no ingestion rules: an event stored
        with an empty tenant_id comes back as it was written.

        Raises:
            DeserializationError: If data is not a mapping, lacks a field, or
                holds a value of the wrong type.
        """
        if not isinstance(data, Mapping):
            raise DeserializationError("Stored event must be a JSON object")
        try:
            timestamp = parse_timestamp(data.get("timestamp"))
        except ValidationError as exc:
            raise DeserializationError(str(exc)) from exc
        status_code = data.get("status_code", 0)
        if isinstance(status_code, bool) or not isinstance(status_code, int):
            raise DeserializationError(f"Invalid stored status_code: {status_code!r}")
        latency_ms = data.get("latency_ms")
        if latency_ms is not None and _coerce_latency(latency_ms) is None:
            raise DeserializationError(f"Invalid stored latency_ms: {latency_ms!r}")
        return cls(
            timestamp=timestamp,
            tenant_id=_stored_str(data, "tenant_id"),
            endpoint=_stored_str(data, "endpoint"),
            method=_stored_str(data, "method", DEFAULT_METHOD),
            status_code=status_code,
            latency_ms=_coerce_latency(latency_ms),
            service=_stored_str(data, "service", DEFAULT_SERVICE),
            request_id=_stored_str(data, "request_id", "") or _new_request_id(),
        )


@dataclass(frozen=True)
class TenantErrorMetrics:
    """Error summary for one tenant over a window."""

    tenant_id: str
    total_requests: int
    error_count: int
    error_rate: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TenantLatencyMetrics:
    """Latency summary for one tenant over a window."""

    tenant_id: str
    total_requests: int
    mean_latency: int
    p95_latency: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
