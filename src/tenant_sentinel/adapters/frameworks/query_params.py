"""Shared query parameter parsing utilities for framework adapters.

Parameters arrive as parsed by urllib.parse.parse_qs. An absent or blank
parameter takes its default; any other value must be a positive integer.
"""

from urllib.parse import parse_qs

from tenant_sentinel.core.errors import ValidationError

DEFAULT_WINDOW_MINUTES = 5
DEFAULT_LIMIT = 10
DEFAULT_DEBUG_WINDOW_MINUTES = 15


def parse_query_string(query_string: bytes | str) -> dict[str, list[str]]:
    """Parse a raw query string, replacing undecodable bytes."""
    if isinstance(query_string, bytes):
        query_string = query_string.decode(errors="replace")
    return parse_qs(query_string)


def _parse_positive_int_param(
    params: dict[str, list[str]], name: str, default: int
) -> int:
    """Parse a positive integer query parameter.

    Args:
        params: Parsed query string parameters.
        name: Parameter name.
        default: Value used when the parameter is absent or blank.

    Returns:
        The parsed integer, or default.

    Raises:
        ValidationError: If the value is present but is not a positive integer.
    """
    values = params.get(name)
    raw = values[0].strip() if values else ""
    if raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"'{name}' must be a positive integer") from None
    if value <= 0:
        raise ValidationError(f"'{name}' must be a positive integer")
    return value


def _parse_window_param(
    params: dict[str, list[str]], default: int = DEFAULT_WINDOW_MINUTES
) -> int:
    return _parse_positive_int_param(params, "window", default)


def _parse_limit_param(
    params: dict[str, list[str]], default: int = DEFAULT_LIMIT
) -> int:
    return _parse_positive_int_param(params, "limit", default)
