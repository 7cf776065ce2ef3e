"""Port interfaces for the telemetry pipeline.

These protocols define the contracts between the ingestion gateway, the
stores it feeds, and the observers the fanout writes to. The core domain
depends only on these interfaces, not concrete implementations.
"""

from collections.abc import Callable, Collection, Mapping
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from sprite_telemetry.core.models import (
    AggregateRecord,
    AttributeValue,
    EventKind,
    TelemetryEvent,
)

AggregateListener = Callable[[AggregateRecord], None]
EventListener = Callable[[TelemetryEvent], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class AggregateStorePort(Protocol):
    """Port for per-sandbox running totals.

    Examples: MetricAggregator.
    """

    def update(
        self,
        sandbox: str,
        metric_name: str,
        value: float,
        attributes: Mapping[str, AttributeValue] | None = None,
    ) -> AggregateRecord:
        """Fold one metric data point into the sandbox's totals."""
        ...

    def get(self, sandbox: str) -> AggregateRecord:
        """Return the sandbox's totals, or a zero record if unknown."""
        ...

    def get_all(self) -> list[AggregateRecord]:
        """Return the totals of every known sandbox."""
        ...

    def subscribe(self, listener: AggregateListener) -> Unsubscribe:
        """Register a callback invoked with every updated record."""
        ...


@runtime_checkable
class EventStorePort(Protocol):
    """Port for bounded per-sandbox event history.

    Examples: EventLog.
    """

    def add_event(
        self,
        sandbox: str,
        kind: EventKind,
        attributes: Mapping[str, AttributeValue] | None = None,
        timestamp: datetime | None = None,
    ) -> TelemetryEvent:
        """Append an event to the sandbox's history."""
        ...

    def get_events(
        self,
        sandbox: str,
        limit: int = 100,
        kinds: Collection[EventKind] | None = None,
    ) -> list[TelemetryEvent]:
        """Return the most recent events, optionally filtered by kind."""
        ...


@runtime_checkable
class ObserverPort(Protocol):
    """A live real-time subscriber.

    ``send`` must not block: it either hands the message to the transport
    or drops it.
    """

    @property
    def writable(self) -> bool:
        """True while the underlying channel can accept messages."""
        ...

    def send(self, message: dict[str, Any]) -> None:
        """Deliver a message without waiting for it to be written."""
        ...
