"""Shared test fixtures for all test modules."""

from collections.abc import AsyncGenerator

import httpx
import pytest

from sprite_telemetry.adapters.fanout import BroadcastFanout
from sprite_telemetry.adapters.otlp.ingest import OtlpIngestor
from sprite_telemetry.adapters.storage.aggregates import MetricAggregator
from sprite_telemetry.adapters.storage.event_log import EventLog
from sprite_telemetry.config import TelemetryConfig
from sprite_telemetry.runtime.service import TelemetryService
from tests.observers import RecordingObserver

# === Store Fixtures ===


@pytest.fixture
def aggregator() -> MetricAggregator:
    """Provide an empty aggregate store."""
    return MetricAggregator()


@pytest.fixture
def event_log() -> EventLog:
    """Provide an empty event log with the default capacity."""
    return EventLog()


@pytest.fixture
def ingestor(aggregator: MetricAggregator, event_log: EventLog) -> OtlpIngestor:
    """Provide an ingestor wired to the store fixtures."""
    return OtlpIngestor(aggregator, event_log)


@pytest.fixture
def fanout(aggregator: MetricAggregator) -> BroadcastFanout:
    """Provide a fanout relaying updates of the aggregator fixture."""
    return BroadcastFanout(aggregator)


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


# === Service Fixtures ===


@pytest.fixture
def http_only_config() -> TelemetryConfig:
    """Configuration that never binds a gRPC port."""
    return TelemetryConfig(grpc_enabled=False)


@pytest.fixture
def service(http_only_config: TelemetryConfig) -> TelemetryService:
    """Provide a telemetry service without the gRPC gateway."""
    return TelemetryService(http_only_config)


@pytest.fixture
async def grpc_service() -> AsyncGenerator[TelemetryService, None]:
    """Provide a started telemetry service with a gateway on a free port."""
    svc = TelemetryService(TelemetryConfig(otlp_host="127.0.0.1", otlp_port=0))
    await svc.start()
    yield svc
    await svc.stop()


# === ASGI Test Fixtures ===


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client, service):
            app = create_telemetry_app(service)
            async with asgi_test_client(app) as client:
                response = await client.get("/metrics")
    """
    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client


@pytest.fixture
async def asgi_client_with_service(service: TelemetryService, asgi_test_client):
    """Fixture combining an HTTP-only service and an ASGI test client.

    Returns a tuple of (client, service).
    """
    from sprite_telemetry.adapters.frameworks.fastapi import create_telemetry_app

    app = create_telemetry_app(service)
    async with asgi_test_client(app) as client:
        yield client, service
