"""Runtime wiring of the telemetry pipeline."""

from sprite_telemetry.runtime.service import TelemetryService

__all__ = ["TelemetryService"]
