"""Wire encodings for events."""

from tenant_sentinel.core.encoding.ndjson import (
    decode_event,
    encode_event,
    encode_ndjson,
)

__all__ = ["decode_event", "encode_event", "encode_ndjson"]
