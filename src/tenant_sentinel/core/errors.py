"""Exception hierarchy shared by the core and its adapters."""


class SentinelError(Exception):
    """Base class for all tenant-sentinel errors."""


class ValidationError(SentinelError, ValueError):
    """Malformed or incomplete input at the ingestion or query boundary."""


class StorageError(SentinelError):
    """The storage medium is unreachable or an operation against it failed.

    Attributes:
        operation: Name of the store operation that failed (e.g. "add_event").
        key: Backend key or table the operation targeted.
    """

    def __init__(self, operation: str, key: str, message: str | None = None) -> None:
        self.operation = operation
        self.key = key
        detail = f": {message}" if message else ""
        super().__init__(f"{operation} failed for {key}{detail}")


class DeserializationError(SentinelError):
    """A stored entry could not be parsed back into an Event."""
