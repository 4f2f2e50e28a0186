"""Pydantic schemas for API request/response models."""
from .distributed import (
    DistributedCallback,
    DistributedResult,
    CallbackAck,
)
from .notification import (
    TriggerNotification,
    TriggerNotificationResponse,
    WebhookConfig,
)

__all__ = [
    "DistributedCallback",
    "DistributedResult",
    "CallbackAck",
    "TriggerNotification",
    "TriggerNotificationResponse",
    "WebhookConfig",
]
