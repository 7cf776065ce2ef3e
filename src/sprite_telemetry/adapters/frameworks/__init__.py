"""Framework adapters exposing the telemetry pipeline over HTTP."""
