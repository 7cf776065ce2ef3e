"""OTLP/gRPC ingestion gateway.

Serves the standard ``MetricsService.Export`` and ``LogsService.Export``
RPCs on a ``grpc.aio`` server, so every call runs on the application's
event loop alongside the HTTP handlers and observer sends.
"""

import logging

import grpc
from opentelemetry.proto.collector.logs.v1 import logs_service_pb2_grpc
from opentelemetry.proto.collector.logs.v1.logs_service_pb2 import (
    ExportLogsServiceRequest,
    ExportLogsServiceResponse,
)
from opentelemetry.proto.collector.metrics.v1 import metrics_service_pb2_grpc
from opentelemetry.proto.collector.metrics.v1.metrics_service_pb2 import (
    ExportMetricsServiceRequest,
    ExportMetricsServiceResponse,
)

from sprite_telemetry.adapters.otlp.ingest import OtlpIngestor
from sprite_telemetry.errors import GatewayError

logger = logging.getLogger(__name__)


class MetricsServicer(metrics_service_pb2_grpc.MetricsServiceServicer):
    """``MetricsService`` implementation backed by an OtlpIngestor."""

    def __init__(self, ingestor: OtlpIngestor) -> None:
        self._ingestor = ingestor

    async def Export(  # noqa: N802
        self,
        request: ExportMetricsServiceRequest,
        context: grpc.aio.ServicerContext,
    ) -> ExportMetricsServiceResponse:
        try:
            result = self._ingestor.ingest_metrics(request)
            logger.debug(
                "Metrics export: %d points accepted, %d resources dropped",
                result.accepted,
                result.dropped_resources,
            )
        except Exception:
            logger.exception("Error processing metrics export")
            await context.abort(
                grpc.StatusCode.INTERNAL, "Error processing metrics export"
            )
        return ExportMetricsServiceResponse()


class LogsServicer(logs_service_pb2_grpc.LogsServiceServicer):
    """``LogsService`` implementation backed by an OtlpIngestor."""

    def __init__(self, ingestor: OtlpIngestor) -> None:
        self._ingestor = ingestor

    async def Export(  # noqa: N802
        self,
        request: ExportLogsServiceRequest,
        context: grpc.aio.ServicerContext,
    ) -> ExportLogsServiceResponse:
        try:
            result = self._ingestor.ingest_logs(request)
            logger.debug(
                "Logs export: %d records accepted, %d resources dropped",
                result.accepted,
                result.dropped_resources,
            )
        except Exception:
            logger.exception("Error processing logs export")
            await context.abort(grpc.StatusCode.INTERNAL, "Error processing logs export")
        return ExportLogsServiceResponse()


class OtlpGrpcGateway:
    """Long-lived OTLP/gRPC server bound to a configurable address.

    Args:
        ingestor: Routes decoded batches into the stores.
        host: Interface to bind. Defaults to all interfaces.
        port: Port to bind. 0 picks a free port; see ``bound_port``.
    """

    def __init__(
        self, ingestor: OtlpIngestor, host: str = "0.0.0.0", port: int = 4317
    ) -> None:
        self.ingestor = ingestor
        self.host = host
        self.port = port
        self._server: grpc.aio.Server | None = None
        self._bound_port: int | None = None

    @property
    def running(self) -> bool:
        return self._server is not None

    @property
    def bound_port(self) -> int | None:
        """Port actually bound, or None while stopped."""
        return self._bound_port

    async def start(self) -> int:
        """Bind the server and start serving.

        Returns:
            The bound port.

        Raises:
            GatewayError: If the gateway is already running or the address
                cannot be bound.
        """
        if self._server is not None:
            raise GatewayError("OTLP gateway is already running")

        server = grpc.aio.server()
        metrics_service_pb2_grpc.add_MetricsServiceServicer_to_server(
            MetricsServicer(self.ingestor), server
        )
        logs_service_pb2_grpc.add_LogsServiceServicer_to_server(
            LogsServicer(self.ingestor), server
        )
        address = f"{self.host}:{self.port}"
        try:
            bound = server.add_insecure_port(address)
        except RuntimeError as e:
            await server.stop(None)
            raise GatewayError(f"Failed to bind OTLP gateway to {address}") from e
        if bound == 0:
            await server.stop(None)
            raise GatewayError(f"Failed to bind OTLP gateway to {address}")

        await server.start()
        self._server = server
        self._bound_port = bound
        logger.info("OTLP gateway listening on %s:%d", self.host, bound)
        return bound

    async def stop(self, grace: float | None = None) -> None:
        """Stop accepting calls.

        Args:
            grace: Seconds in-flight calls may take to finish. None cancels
                them immediately.
        """
        if self._server is None:
            return
        server, self._server = self._server, None
        self._bound_port = None
        await server.stop(grace)
        logger.info("OTLP gateway stopped")
