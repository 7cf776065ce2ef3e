"""Core domain: models, ports, and pure decoding helpers."""
