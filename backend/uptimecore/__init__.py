"""Uptime monitoring core: probes, status transitions, and alerting."""

__version__ = "1.0.0"
