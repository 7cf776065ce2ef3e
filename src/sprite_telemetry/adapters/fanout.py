"""Broadcast of telemetry and lifecycle updates to real-time observers.

Observers receive one ``initial_state`` message on connect, followed by a
``telemetry_updated`` message for every aggregate update and one message
per lifecycle notification. Delivery is fire-and-forget: observers that
are not writable are skipped, nothing is queued or retried.
"""

import json
import logging
from typing import Any

from sprite_telemetry.core.encoding.ndjson import make_message, record_to_dict
from sprite_telemetry.core.models import AggregateRecord, LifecycleEvent
from sprite_telemetry.core.ports import AggregateStorePort, ObserverPort

logger = logging.getLogger(__name__)

INITIAL_STATE = "initial_state"
TELEMETRY_UPDATED = "telemetry_updated"
PING = "ping"
PONG = "pong"


class BroadcastFanout:
    """Registry of connected observers fed from an aggregate store.

    Subscribes to ``aggregates`` on construction; call ``close`` to detach.

    Args:
        aggregates: Store whose updates are relayed and whose contents form
            the initial snapshot.
    """

    def __init__(self, aggregates: AggregateStorePort) -> None:
        self._aggregates = aggregates
        self._observers: list[ObserverPort] = []
        self._unsubscribe = aggregates.subscribe(self._on_aggregate_updated)

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def connect(self, observer: ObserverPort) -> None:
        """Register an observer and send it the current snapshot."""
        self._observers.append(observer)
        logger.info("Telemetry observer connected (%d total)", len(self._observers))
        snapshot = [record_to_dict(r) for r in self._aggregates.get_all()]
        self._deliver(observer, make_message(INITIAL_STATE, snapshot))

    def disconnect(self, observer: ObserverPort) -> None:
        """Deregister an observer. Unknown observers are ignored."""
        if observer in self._observers:
            self._observers.remove(observer)
            logger.info(
                "Telemetry observer disconnected (%d remaining)", len(self._observers)
            )

    def handle_message(self, observer: ObserverPort, raw: str | bytes) -> None:
        """Handle an inbound observer message.

        A ``{"type": "ping"}`` is answered with ``{"type": "pong"}`` sent to
        that observer only. Anything else is ignored.
        """
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Invalid message received from telemetry observer")
            return
        if isinstance(message, dict) and message.get("type") == PING:
            self._deliver(observer, make_message(PONG))

    def publish_lifecycle(self, event: LifecycleEvent, payload: Any = None) -> None:
        """Relay a lifecycle notification to every observer, unmodified."""
        self.broadcast(make_message(str(LifecycleEvent(event)), payload))

    def broadcast(self, message: dict[str, Any]) -> None:
        """Send ``message`` to every writable observer."""
        for observer in list(self._observers):
            self._deliver(observer, message)

    def close(self) -> None:
        """Stop relaying aggregate updates and forget all observers."""
        self._unsubscribe()
        self._observers.clear()

    def _on_aggregate_updated(self, record: AggregateRecord) -> None:
        self.broadcast(make_message(TELEMETRY_UPDATED, record_to_dict(record)))

    def _deliver(self, observer: ObserverPort, message: dict[str, Any]) -> None:
        if not observer.writable:
            return
        try:
            observer.send(message)
        except Exception:
            logger.warning("Dropping telemetry observer after failed send", exc_info=True)
            self.disconnect(observer)
