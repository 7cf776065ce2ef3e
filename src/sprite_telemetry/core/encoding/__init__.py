"""Encoders for telemetry records."""
