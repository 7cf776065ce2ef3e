"""Telemetry ingestion and aggregation for coding-agent sandboxes."""

from sprite_telemetry.adapters.fanout import BroadcastFanout
from sprite_telemetry.adapters.otlp import IngestResult, OtlpGrpcGateway, OtlpIngestor
from sprite_telemetry.adapters.storage import EventLog, MetricAggregator
from sprite_telemetry.config import TelemetryConfig
from sprite_telemetry.core.models import (
    AggregateRecord,
    ApiStats,
    EventKind,
    LifecycleEvent,
    SandboxStatus,
    TelemetryEvent,
    ToolStats,
    ToolUsage,
)
from sprite_telemetry.errors import ConfigError, GatewayError, SpriteTelemetryError
from sprite_telemetry.runtime import TelemetryService

__all__ = [
    "AggregateRecord",
    "ApiStats",
    "BroadcastFanout",
    "ConfigError",
    "EventKind",
    "EventLog",
    "GatewayError",
    "IngestResult",
    "LifecycleEvent",
    "MetricAggregator",
    "OtlpGrpcGateway",
    "OtlpIngestor",
    "SandboxStatus",
    "SpriteTelemetryError",
    "TelemetryConfig",
    "TelemetryEvent",
    "TelemetryService",
    "ToolStats",
    "ToolUsage",
]
