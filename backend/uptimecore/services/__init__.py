"""Services for probing, status tracking, and alerting."""
from .network import NetworkService, ProbeResult
from .status import StatusService, StatusUpdate
from .notifier import NotificationService
from .distributed import DistributedUptimeService
from .scheduler import SchedulerService, MonitorCycle

__all__ = [
    "NetworkService",
    "ProbeResult",
    "StatusService",
    "StatusUpdate",
    "NotificationService",
    "DistributedUptimeService",
    "SchedulerService",
    "MonitorCycle",
]
