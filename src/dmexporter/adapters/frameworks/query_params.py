"""Query parameter parsing for the /logs endpoint.

Shared by the ASGI app; the FastAPI router validates through ``Query``.
Invalid values fall back to "no filter" rather than failing the request.
"""

import math

VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _first(params: dict[str, list[str]], name: str) -> str | None:
    values = params.get(name)
    return values[0] if values else None


def _parse_since_param(params: dict[str, list[str]]) -> float:
    """Return the ``since`` timestamp from ``parse_qs`` output.

    Missing, unparsable, negative and non-finite values all map to 0.0.
    """
    raw = _first(params, "since")
    if raw is None:
        return 0.0
    try:
        value = float(raw)
    except ValueError:
        return 0.0
    if value < 0 or not math.isfinite(value):
        return 0.0
    return value


def _parse_level_param(params: dict[str, list[str]]) -> str | None:
    """Return the upper-cased ``level`` filter, or None if absent or unknown."""
    raw = _first(params, "level")
    if raw and raw.upper() in VALID_LEVELS:
        return raw.upper()
    return None
