"""Routing of OTLP export batches into the telemetry stores.

The functions here are transport-agnostic: the gRPC servicers and the
OTLP/HTTP routes both hand decoded export requests to an
:class:`OtlpIngestor`. Entries that cannot be attributed to a sandbox or
that carry an unsupported shape are dropped at the smallest possible
granularity; nothing here raises for bad input.
"""

import json
import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from google.protobuf.json_format import MessageToDict
from opentelemetry.proto.collector.logs.v1.logs_service_pb2 import (
    ExportLogsServiceRequest,
)
from opentelemetry.proto.collector.metrics.v1.metrics_service_pb2 import (
    ExportMetricsServiceRequest,
)
from opentelemetry.proto.common.v1.common_pb2 import AnyValue
from opentelemetry.proto.logs.v1.logs_pb2 import LogRecord
from opentelemetry.proto.metrics.v1.metrics_pb2 import Metric, NumberDataPoint
from opentelemetry.proto.resource.v1.resource_pb2 import Resource

from sprite_telemetry.core.attributes import decode_attributes
from sprite_telemetry.core.identity import DEFAULT_SERVICE_PREFIX, resolve_sandbox
from sprite_telemetry.core.models import EventKind
from sprite_telemetry.core.ports import AggregateStorePort, EventStorePort

logger = logging.getLogger(__name__)

EVENT_TYPE_KEY = "event_type"
BODY_KEY = "body"
DEFAULT_EVENT_KIND = EventKind.API_REQUEST

_NANOS_PER_MILLI = 1_000_000
_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass
class IngestResult:
    """Counts describing what happened to one export batch."""

    accepted: int = 0
    dropped_resources: int = 0
    skipped_metrics: int = 0
    skipped_points: int = 0


def point_value(point: NumberDataPoint) -> float:
    """Return the numeric value of a data point, preferring ``as_double``."""
    populated = point.WhichOneof("value")
    if populated == "as_double":
        return point.as_double
    if populated == "as_int":
        return float(point.as_int)
    return 0.0


def data_points(metric: Metric) -> list[NumberDataPoint] | None:
    """Return the number data points of a sum or gauge metric.

    Returns:
        The data points, or None for histogram, summary and unset data.
    """
    populated = metric.WhichOneof("data")
    if populated == "sum":
        return list(metric.sum.data_points)
    if populated == "gauge":
        return list(metric.gauge.data_points)
    return None


def log_timestamp(record: LogRecord) -> datetime:
    """Return the record's time, truncated to millisecond precision.

    ``time_unix_nano`` wins; ``observed_time_unix_nano`` is the fallback.
    When neither is set the current time is used.
    """
    nanos = record.time_unix_nano or record.observed_time_unix_nano
    if not nanos:
        return datetime.now(UTC)
    millis = nanos // _NANOS_PER_MILLI
    return _EPOCH + timedelta(milliseconds=millis)


def render_body(body: AnyValue) -> str:
    """Render a log body: strings verbatim, anything else as JSON."""
    if body.WhichOneof("value") == "string_value":
        return body.string_value
    return json.dumps(MessageToDict(body), sort_keys=True)


def event_kind(raw: object) -> EventKind:
    """Map an ``event_type`` attribute to an event kind."""
    if raw is None:
        return DEFAULT_EVENT_KIND
    kind = EventKind.parse(raw)
    if kind is None:
        logger.debug("Unknown event_type %r, recording as %s", raw, DEFAULT_EVENT_KIND)
        return DEFAULT_EVENT_KIND
    return kind


class OtlpIngestor:
    """Route OTLP metric and log batches to the aggregate and event stores.

    Args:
        aggregates: Store receiving metric data points.
        events: Store receiving log records as discrete events.
        service_prefix: Producer prefix stripped from ``service.name``
            when a resource has no ``service.instance.id``.
    """

    def __init__(
        self,
        aggregates: AggregateStorePort,
        events: EventStorePort,
        service_prefix: str = DEFAULT_SERVICE_PREFIX,
    ) -> None:
        self.aggregates = aggregates
        self.events = events
        self.service_prefix = service_prefix

    def _sandbox_for(self, resource: Resource) -> str | None:
        return resolve_sandbox(
            decode_attributes(resource.attributes), self.service_prefix
        )

    def ingest_metrics(self, request: ExportMetricsServiceRequest) -> IngestResult:
        """Fold every sum and gauge data point of the batch into the aggregates.

        NaN and infinite points are counted in ``skipped_points`` and do not
        touch the sandbox record.
        """
        result = IngestResult()
        for resource_metrics in request.resource_metrics:
            sandbox = self._sandbox_for(resource_metrics.resource)
            if sandbox is None:
                result.dropped_resources += 1
                logger.debug("Dropping metrics from unidentified resource")
                continue
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    points = data_points(metric)
                    if points is None:
                        result.skipped_metrics += 1
                        continue
                    for point in points:
                        value = point_value(point)
                        if not math.isfinite(value):
                            result.skipped_points += 1
                            logger.debug(
                                "Skipping non-finite %s point from %s",
                                metric.name,
                                sandbox,
                            )
                            continue
                        self.aggregates.update(
                            sandbox,
                            metric.name,
                            value,
                            decode_attributes(point.attributes),
                        )
                        result.accepted += 1
        return result

    def ingest_logs(self, request: ExportLogsServiceRequest) -> IngestResult:
        """Append every log record of the batch to the event log."""
        result = IngestResult()
        for resource_logs in request.resource_logs:
            sandbox = self._sandbox_for(resource_logs.resource)
            if sandbox is None:
                result.dropped_resources += 1
                logger.debug("Dropping logs from unidentified resource")
                continue
            for scope_logs in resource_logs.scope_logs:
                for record in scope_logs.log_records:
                    attributes = decode_attributes(record.attributes)
                    kind = event_kind(attributes.get(EVENT_TYPE_KEY))
                    attributes[BODY_KEY] = render_body(record.body)
                    self.events.add_event(
                        sandbox, kind, attributes, log_timestamp(record)
                    )
                    result.accepted += 1
        return result
