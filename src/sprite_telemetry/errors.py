"""Exceptions raised by sprite_telemetry."""


class SpriteTelemetryError(Exception):
    """Base class for errors raised by this package."""


class ConfigError(SpriteTelemetryError):
    """Invalid configuration value."""


class GatewayError(SpriteTelemetryError):
    """The ingestion gateway could not be started."""
