"""Example telemetry server.

Run with:
    python examples/telemetry_server.py
or:
    uvicorn examples.telemetry_server:app

Endpoints:
    OTLP/gRPC on :4317    - MetricsService/Export, LogsService/Export
    POST /v1/metrics      - OTLP/HTTP metrics export
    POST /v1/logs         - OTLP/HTTP logs export
    /metrics              - Prometheus text format
    /telemetry            - totals of every sandbox (JSON)
    /telemetry/<sprite>/events?limit=&type=  - recent events (NDJSON)
    /telemetry/ws         - real-time updates (WebSocket)

Point a sandbox agent at it with, for example:
    OTEL_EXPORTER_OTLP_ENDPOINT=http://localhost:4317
    OTEL_RESOURCE_ATTRIBUTES=service.instance.id=my-sprite
"""

import logging

import uvicorn

from sprite_telemetry.adapters.frameworks.fastapi import create_telemetry_app
from sprite_telemetry.config import TelemetryConfig
from sprite_telemetry.runtime.service import TelemetryService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

service = TelemetryService(TelemetryConfig.from_env())
app = create_telemetry_app(service)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
