"""JSON and NDJSON encoders for telemetry records.

Wire field names are camelCase, matching what dashboards consume.
"""

import json
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sprite_telemetry.core.models import (
    AggregateRecord,
    ApiStats,
    TelemetryEvent,
    ToolStats,
)


def format_timestamp(value: datetime | None) -> str | None:
    """Format a UTC datetime as ISO-8601 with milliseconds and a ``Z`` suffix."""
    if value is None:
        return None
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def record_to_dict(record: AggregateRecord) -> dict[str, Any]:
    """Convert an aggregate record to its wire form, with integer counters."""
    return {
        "spriteName": record.sandbox,
        "inputTokens": int(record.input_tokens),
        "outputTokens": int(record.output_tokens),
        "cacheReadTokens": int(record.cache_read_tokens),
        "cacheCreationTokens": int(record.cache_creation_tokens),
        "costUsd": record.cost_usd,
        "sessions": int(record.sessions),
        "commits": int(record.commits),
        "pullRequests": int(record.pull_requests),
        "linesAdded": int(record.lines_added),
        "linesRemoved": int(record.lines_removed),
        "status": str(record.status),
        "lastUpdated": format_timestamp(record.last_updated),
    }


def event_to_dict(event: TelemetryEvent) -> dict[str, Any]:
    """Convert a telemetry event to its wire form."""
    return {
        "timestamp": format_timestamp(event.timestamp),
        "eventType": str(event.kind),
        "spriteName": event.sandbox,
        "attributes": event.attributes,
    }


def api_stats_to_dict(stats: ApiStats) -> dict[str, Any]:
    return {
        "totalRequests": stats.total_requests,
        "errors": stats.errors,
        "totalDurationMs": stats.total_duration_ms,
    }


def tool_stats_to_dict(stats: ToolStats) -> dict[str, Any]:
    return {
        name: {"uses": usage.uses, "errors": usage.errors}
        for name, usage in stats.items()
    }


def make_message(message_type: str, payload: Any = None) -> dict[str, Any]:
    """Build a real-time message.

    Args:
        message_type: Value of the ``type`` field.
        payload: Optional JSON-serialisable payload. Omitted when None.
    """
    message: dict[str, Any] = {"type": message_type}
    if payload is not None:
        message["payload"] = payload
    return message


def encode_events(events: Iterable[TelemetryEvent]) -> str:
    """Encode telemetry events to newline-delimited JSON.

    Args:
        events: An iterable of TelemetryEvent objects.

    Returns:
        NDJSON string with one JSON object per line.
        Empty string if no events.
    """
    lines = [json.dumps(event_to_dict(event)) for event in events]

    if not lines:
        return ""

    return "\n".join(lines) + "\n"
