"""Bounded per-sandbox event history.

Each sandbox gets its own ring buffer, created on the first event for that
sandbox. When a buffer is full, the oldest event is evicted to make room
for the new one, so memory use stays predictable regardless of how chatty
a sandbox is.
"""

import logging
from collections import deque
from collections.abc import Collection, Mapping
from datetime import UTC, datetime, timedelta

from sprite_telemetry.core.models import (
    ApiStats,
    AttributeValue,
    EventKind,
    TelemetryEvent,
    ToolStats,
    ToolUsage,
)
from sprite_telemetry.core.notify import ListenerSet
from sprite_telemetry.core.ports import EventListener, Unsubscribe

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 500
DEFAULT_EVENT_LIMIT = 100


def _as_number(value: AttributeValue | None) -> float | None:
    """Interpret an attribute as a number, accepting numeric strings."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(value)
    except ValueError:
        return None


class EventLog:
    """Ring buffer implementation of EventStorePort.

    Args:
        max_events: Maximum number of events retained per sandbox.
    """

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS) -> None:
        if max_events < 1:
            raise ValueError("max_events must be at least 1")
        self._max_events = max_events
        self._events: dict[str, deque[TelemetryEvent]] = {}
        self._listeners: ListenerSet[TelemetryEvent] = ListenerSet("event")

    @property
    def max_events(self) -> int:
        return self._max_events

    def sandboxes(self) -> list[str]:
        """Return every sandbox with retained history, in first-seen order."""
        return list(self._events)

    def add_event(
        self,
        sandbox: str,
        kind: EventKind,
        attributes: Mapping[str, AttributeValue] | None = None,
        timestamp: datetime | None = None,
    ) -> TelemetryEvent:
        """Append an event to the sandbox's history.

        Args:
            sandbox: Sandbox identity.
            kind: Event kind.
            attributes: Structured fields of the event.
            timestamp: When the event happened. Defaults to now.

        Returns:
            The stored event.
        """
        buffer = self._events.get(sandbox)
        if buffer is None:
            buffer = deque(maxlen=self._max_events)
            self._events[sandbox] = buffer

        event = TelemetryEvent(
            timestamp=timestamp or datetime.now(UTC),
            sandbox=sandbox,
            kind=EventKind(kind),
            attributes=dict(attributes or {}),
        )
        buffer.append(event)
        logger.debug("Event %s recorded for %s", event.kind, sandbox)
        self._listeners.notify(event)
        return event

    def get_events(
        self,
        sandbox: str,
        limit: int = DEFAULT_EVENT_LIMIT,
        kinds: Collection[EventKind] | None = None,
    ) -> list[TelemetryEvent]:
        """Return the sandbox's most recent events.

        The kind filter is applied first, then the last ``limit`` of the
        matching events are returned in chronological order.

        Args:
            sandbox: Sandbox identity.
            limit: Maximum number of events to return.
            kinds: Only return events of these kinds. None or empty means
                all kinds.
        """
        if limit <= 0:
            return []
        events = list(self._events.get(sandbox, ()))
        if kinds:
            wanted = set(kinds)
            events = [e for e in events if e.kind in wanted]
        return events[-limit:]

    def get_timeline(self, sandbox: str, minutes: float) -> list[TelemetryEvent]:
        """Return retained events from the last ``minutes`` minutes."""
        cutoff = datetime.now(UTC) - timedelta(minutes=minutes)
        return [e for e in self._events.get(sandbox, ()) if e.timestamp >= cutoff]

    def get_api_stats(self, sandbox: str) -> ApiStats:
        """Summarise API requests and errors among the retained events."""
        total_requests = 0
        errors = 0
        total_duration_ms = 0.0
        for event in self._events.get(sandbox, ()):
            if event.kind is EventKind.API_REQUEST:
                total_requests += 1
                duration = _as_number(event.attributes.get("durationMs"))
                if duration is not None:
                    total_duration_ms += duration
            elif event.kind is EventKind.API_ERROR:
                errors += 1
        return ApiStats(
            total_requests=total_requests,
            errors=errors,
            total_duration_ms=total_duration_ms,
        )

    def get_tool_stats(self, sandbox: str) -> ToolStats:
        """Count tool decisions and tool errors among the retained events."""
        stats: ToolStats = {}
        for event in self._events.get(sandbox, ()):
            tool_name = event.attributes.get("toolName")
            if not tool_name:
                continue
            usage = stats.setdefault(str(tool_name), ToolUsage())
            if event.kind is EventKind.TOOL_DECISION:
                usage.uses += 1
            if event.attributes.get("error"):
                usage.errors += 1
        return stats

    def subscribe(self, listener: EventListener) -> Unsubscribe:
        """Register a callback invoked with every appended event."""
        return self._listeners.add(listener)
