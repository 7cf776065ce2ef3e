"""OTLP ingestion: batch routing and the gRPC gateway."""

from sprite_telemetry.adapters.otlp.grpc_server import OtlpGrpcGateway
from sprite_telemetry.adapters.otlp.ingest import IngestResult, OtlpIngestor

__all__ = [
    "IngestResult",
    "OtlpGrpcGateway",
    "OtlpIngestor",
]
