"""CLI command groups."""

__all__ = ["config", "logs", "markers", "retrieval"]
