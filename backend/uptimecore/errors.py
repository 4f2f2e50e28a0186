"""Exceptions raised by the monitoring core.

Target-down outcomes are never raised; they become down ProbeResults.
Only misconfiguration and monitor persistence failures surface as errors.
"""
from typing import Optional


class UptimeCoreError(Exception):
    """Base class for monitoring core errors."""

    def __init__(self, message: str, service: Optional[str] = None, method: Optional[str] = None):
        super().__init__(message)
        self.service = service
        self.method = method


class UnsupportedMonitorTypeError(UptimeCoreError):
    """A monitor declares a type no probe handler exists for."""

    def __init__(self, monitor_type: str):
        super().__init__(f"Unsupported type: {monitor_type}", service="NetworkService", method="get_status")
        self.monitor_type = monitor_type


class NotificationConfigError(UptimeCoreError):
    """A notification is missing fields its platform requires."""


class DistributedDispatchError(UptimeCoreError):
    """The distributed probe network did not accept a dispatch request."""


class MonitorNotFoundError(UptimeCoreError):
    """No monitor exists for the id carried by a probe result."""

    def __init__(self, monitor_id):
        super().__init__(f"Monitor with id {monitor_id} not found", service="StatusService", method="update_status")
        self.monitor_id = monitor_id
