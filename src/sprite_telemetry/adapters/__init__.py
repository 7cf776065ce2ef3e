"""Adapters connecting the telemetry core to storage, wire protocols and frameworks."""
