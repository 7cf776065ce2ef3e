"""Query parameter parsing for the telemetry read endpoints.

Invalid values never produce an error response: they fall back to the
default, the same way a missing parameter does.
"""

import math

from sprite_telemetry.adapters.storage.event_log import DEFAULT_EVENT_LIMIT
from sprite_telemetry.core.models import EventKind

DEFAULT_TIMELINE_MINUTES = 60.0


def _parse_limit_param(params: dict[str, list[str]]) -> int:
    """Parse and validate the 'limit' query parameter.

    Args:
        params: Parsed query string parameters (as returned by urllib.parse.parse_qs).

    Returns:
        Positive integer limit, defaulting to 100 if invalid or missing.
    """
    try:
        value = int(params.get("limit", [str(DEFAULT_EVENT_LIMIT)])[0])
    except ValueError:
        return DEFAULT_EVENT_LIMIT
    if value < 1:
        return DEFAULT_EVENT_LIMIT
    return value


def _parse_minutes_param(params: dict[str, list[str]]) -> float:
    """Parse and validate the 'minutes' query parameter.

    Returns:
        Window length in minutes, defaulting to 60 if invalid or missing.
        Rejects negative, NaN, and infinite values.
    """
    try:
        value = float(params.get("minutes", [str(DEFAULT_TIMELINE_MINUTES)])[0])
    except ValueError:
        return DEFAULT_TIMELINE_MINUTES
    if value < 0 or math.isnan(value) or math.isinf(value):
        return DEFAULT_TIMELINE_MINUTES
    return value


def _parse_kinds_param(params: dict[str, list[str]]) -> list[EventKind] | None:
    """Parse the repeatable 'type' query parameter into event kinds.

    Values may also be comma-separated. Unknown kinds are ignored.

    Returns:
        The requested kinds, or None when no known kind was given.
    """
    kinds: list[EventKind] = []
    for raw in params.get("type", []):
        for part in raw.split(","):
            kind = EventKind.parse(part.strip())
            if kind is not None and kind not in kinds:
                kinds.append(kind)
    return kinds or None
