"""Configuration for the telemetry service.

Settings have defaults suitable for a local deployment and can be
overridden from environment variables prefixed with ``SPRITE_TELEMETRY_``.
``OTEL_GRPC_PORT`` is honoured as an alias for the gateway port.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sprite_telemetry.adapters.storage.event_log import DEFAULT_MAX_EVENTS
from sprite_telemetry.core.identity import DEFAULT_SERVICE_PREFIX
from sprite_telemetry.errors import ConfigError

ENV_PREFIX = "SPRITE_TELEMETRY_"
OTEL_PORT_ALIAS = "OTEL_GRPC_PORT"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _parse_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class TelemetryConfig:
    """Settings of the telemetry pipeline.

    Attributes:
        otlp_host: Interface the OTLP/gRPC gateway binds to.
        otlp_port: Port of the OTLP/gRPC gateway (0 picks a free port).
        grpc_enabled: Whether to start the gRPC gateway at all. The
            OTLP/HTTP routes are always available.
        service_prefix: Producer prefix stripped from ``service.name`` to
            obtain a sandbox identity.
        max_events_per_sandbox: Capacity of each sandbox's event log.
        grace_seconds: Time in-flight gRPC calls get on shutdown. None
            cancels them immediately.
    """

    otlp_host: str = "0.0.0.0"
    otlp_port: int = 4317
    grpc_enabled: bool = True
    service_prefix: str = DEFAULT_SERVICE_PREFIX
    max_events_per_sandbox: int = DEFAULT_MAX_EVENTS
    grace_seconds: float | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.otlp_port <= 65535:
            raise ConfigError(f"otlp_port out of range: {self.otlp_port}")
        if self.max_events_per_sandbox < 1:
            raise ConfigError(
                f"max_events_per_sandbox must be at least 1, "
                f"got {self.max_events_per_sandbox}"
            )
        if not self.service_prefix:
            raise ConfigError("service_prefix must not be empty")
        if self.grace_seconds is not None and self.grace_seconds < 0:
            raise ConfigError(f"grace_seconds must not be negative: {self.grace_seconds}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "TelemetryConfig":
        """Build a configuration from environment variables.

        Recognised variables: ``SPRITE_TELEMETRY_OTLP_HOST``,
        ``SPRITE_TELEMETRY_OTLP_PORT`` (or ``OTEL_GRPC_PORT``),
        ``SPRITE_TELEMETRY_GRPC_ENABLED``, ``SPRITE_TELEMETRY_SERVICE_PREFIX``,
        ``SPRITE_TELEMETRY_MAX_EVENTS``, ``SPRITE_TELEMETRY_GRACE_SECONDS``.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Raises:
            ConfigError: If a variable holds an invalid value.
        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, Any] = {}

        if host := env.get(f"{ENV_PREFIX}OTLP_HOST"):
            kwargs["otlp_host"] = host

        port_name = f"{ENV_PREFIX}OTLP_PORT"
        if port_name not in env and OTEL_PORT_ALIAS in env:
            port_name = OTEL_PORT_ALIAS
        if port_name in env:
            kwargs["otlp_port"] = _parse_int(port_name, env[port_name])

        enabled_name = f"{ENV_PREFIX}GRPC_ENABLED"
        if enabled_name in env:
            kwargs["grpc_enabled"] = _parse_bool(enabled_name, env[enabled_name])

        if prefix := env.get(f"{ENV_PREFIX}SERVICE_PREFIX"):
            kwargs["service_prefix"] = prefix

        max_events_name = f"{ENV_PREFIX}MAX_EVENTS"
        if max_events_name in env:
            kwargs["max_events_per_sandbox"] = _parse_int(
                max_events_name, env[max_events_name]
            )

        grace_name = f"{ENV_PREFIX}GRACE_SECONDS"
        if grace_name in env:
            try:
                kwargs["grace_seconds"] = float(env[grace_name])
            except ValueError:
                raise ConfigError(
                    f"{grace_name} must be a number, got {env[grace_name]!r}"
                ) from None

        return cls(**kwargs)
