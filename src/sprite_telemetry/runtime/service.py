"""Composition root of the telemetry pipeline.

``TelemetryService`` owns the stores, the broadcast fanout, the Prometheus
registry and the OTLP gateway. Construct one at application startup and
pass it to whatever needs it; there is no module-level instance.
"""

import logging
from collections.abc import Collection
from typing import Any

from sprite_telemetry.adapters.fanout import BroadcastFanout
from sprite_telemetry.adapters.otlp.grpc_server import OtlpGrpcGateway
from sprite_telemetry.adapters.otlp.ingest import OtlpIngestor
from sprite_telemetry.adapters.storage.aggregates import MetricAggregator
from sprite_telemetry.adapters.storage.event_log import (
    DEFAULT_EVENT_LIMIT,
    EventLog,
)
from sprite_telemetry.config import TelemetryConfig
from sprite_telemetry.core.encoding.prometheus import (
    AggregateCollector,
    LifecycleMetrics,
    encode_metrics,
)
from sprite_telemetry.core.models import (
    AggregateRecord,
    ApiStats,
    EventKind,
    LifecycleEvent,
    TelemetryEvent,
    ToolStats,
)

logger = logging.getLogger(__name__)

# Lifecycle notifications that also move a lifecycle counter.
_LIFECYCLE_COUNTERS = {
    LifecycleEvent.SPRITE_CREATED: "sprites.created",
    LifecycleEvent.SPRITE_DELETED: "sprites.deleted",
    LifecycleEvent.SPRITE_SHUTDOWN: "sprites.shutdown",
    LifecycleEvent.SPRITE_WOKEN: "sprites.woken",
    LifecycleEvent.CHECKPOINT_CREATED: "sprites.checkpoint.created",
}


class TelemetryService:
    """Telemetry stores, fanout, metrics and gateway with a start/stop lifecycle.

    Args:
        config: Pipeline settings. Defaults to ``TelemetryConfig()``.
    """

    def __init__(self, config: TelemetryConfig | None = None) -> None:
        self.config = config or TelemetryConfig()
        self.aggregates = MetricAggregator()
        self.events = EventLog(max_events=self.config.max_events_per_sandbox)
        self.fanout = BroadcastFanout(self.aggregates)
        self.lifecycle_metrics = LifecycleMetrics()
        self.lifecycle_metrics.registry.register(AggregateCollector(self.aggregates))
        self.ingestor = OtlpIngestor(
            self.aggregates, self.events, self.config.service_prefix
        )
        self.gateway = OtlpGrpcGateway(
            self.ingestor, self.config.otlp_host, self.config.otlp_port
        )
        self._started = False

        self.aggregates.subscribe(self._log_update)
        self.events.subscribe(self._log_event)

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Start the OTLP/gRPC gateway, if enabled. Idempotent.

        Raises:
            GatewayError: If the gateway cannot bind its address.
        """
        if self._started:
            return
        logger.info("Starting telemetry service")
        if self.config.grpc_enabled:
            await self.gateway.start()
        self._started = True
        logger.info("Telemetry service started")

    async def stop(self) -> None:
        """Stop the gateway. Stored telemetry is kept. Idempotent."""
        if not self._started:
            return
        await self.gateway.stop(self.config.grace_seconds)
        self._started = False
        logger.info("Telemetry service stopped")

    def close(self) -> None:
        """Detach the fanout from the aggregate store."""
        self.fanout.close()

    # --- Read accessors ---

    def get_sprite_telemetry(self, sandbox: str) -> AggregateRecord:
        return self.aggregates.get(sandbox)

    def get_all_telemetry(self) -> list[AggregateRecord]:
        return self.aggregates.get_all()

    def get_sprite_events(
        self,
        sandbox: str,
        limit: int = DEFAULT_EVENT_LIMIT,
        kinds: Collection[EventKind] | None = None,
    ) -> list[TelemetryEvent]:
        return self.events.get_events(sandbox, limit, kinds)

    def get_sprite_timeline(self, sandbox: str, minutes: float) -> list[TelemetryEvent]:
        return self.events.get_timeline(sandbox, minutes)

    def get_api_stats(self, sandbox: str) -> ApiStats:
        return self.events.get_api_stats(sandbox)

    def get_tool_stats(self, sandbox: str) -> ToolStats:
        return self.events.get_tool_stats(sandbox)

    def scrape(self) -> str:
        """Render lifecycle and aggregate metrics in Prometheus text format."""
        return encode_metrics(self.lifecycle_metrics.registry)

    # --- Lifecycle notifications ---

    def publish_lifecycle(self, event: LifecycleEvent, payload: Any = None) -> None:
        """Relay a sandbox lifecycle notification to observers.

        Creation, deletion, shutdown, wake-up and checkpoint creation also
        update the matching lifecycle counters.
        """
        counter = _LIFECYCLE_COUNTERS.get(LifecycleEvent(event))
        if counter is not None:
            self.lifecycle_metrics.record_counter(counter)
        self.fanout.publish_lifecycle(event, payload)

    def record_checkpoint_duration(self, duration_ms: float) -> None:
        """Observe how long a checkpoint took to create."""
        self.lifecycle_metrics.record_histogram("sprites.checkpoint.duration", duration_ms)

    def record_exec_duration(self, duration_ms: float) -> None:
        """Observe how long a sandbox command ran."""
        self.lifecycle_metrics.record_histogram("sprites.exec.duration", duration_ms)

    def set_active_sandboxes(self, count: int) -> None:
        """Overwrite the active sandbox gauge, e.g. after a provider resync."""
        self.lifecycle_metrics.record_gauge("sandboxes.active", count)

    def record_lifecycle_error(self, operation: str, error: BaseException) -> None:
        """Log a failed lifecycle operation such as ``sprites.checkpoint``."""
        self.lifecycle_metrics.record_error(operation, error)

    def _log_update(self, record: AggregateRecord) -> None:
        logger.debug(
            "Telemetry update for %s: tokens=%d cost=%.4f",
            record.sandbox,
            record.total_tokens,
            record.cost_usd,
        )

    def _log_event(self, event: TelemetryEvent) -> None:
        logger.debug("Event received: %s for %s", event.kind, event.sandbox)
