"""Storage adapters implementing core ports."""

from sprite_telemetry.adapters.storage.aggregates import MetricAggregator
from sprite_telemetry.adapters.storage.event_log import EventLog

__all__ = [
    "EventLog",
    "MetricAggregator",
]
