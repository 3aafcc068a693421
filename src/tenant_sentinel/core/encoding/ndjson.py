"""JSON and NDJSON encoding for stored events.

Each event is persisted as one JSON object. Bulk exports use
newline-delimited JSON with one event per line.
"""

import json
from collections.abc import Iterable

from tenant_sentinel.core.errors import DeserializationError
from tenant_sentinel.core.models import Event


def encode_event(event: Event, nonce: str | None = None) -> str:
    """Serialize an event to a compact JSON string.

    A nonce, when given, is written alongside the event fields so that two
    identical events still serialize to distinct strings.
    """
    obj = event.to_dict()
    if nonce is not None:
        obj["nonce"] = nonce
    return json.dumps(obj, separators=(",", ":"), sort_keys=True)


def decode_event(data: str | bytes) -> Event:
    """Parse a serialized event.

    Args:
        data: JSON text produced by encode_event.

    Returns:
        The decoded Event.

    Raises:
        DeserializationError: If the text is not valid JSON or does not hold
            a stored event.
    """
    try:
        obj = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as exc:
        raise DeserializationError(f"Invalid event JSON: {exc}") from exc
    return Event.from_dict(obj)


def encode_ndjson(events: Iterable[Event]) -> str:
    """Encode events to newline-delimited JSON.

    Returns:
        NDJSON string with one JSON object per line.
        Empty string if no events.
    """
    lines = [encode_event(event) for event in events]
    if not lines:
        return ""
    return "\n".join(lines) + "\n"
