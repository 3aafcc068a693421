"""Framework adapters exposing the event store over HTTP and ASGI."""
