"""Database models."""
from .monitor import Monitor
from .check import Check, PageSpeedCheck, HardwareCheck, DistributedCheck
from .notification import Notification

__all__ = ["Monitor", "Check", "PageSpeedCheck", "HardwareCheck", "DistributedCheck", "Notification"]
