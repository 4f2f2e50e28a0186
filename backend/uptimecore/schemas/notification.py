"""Notification schemas for API."""
from typing import Optional
from pydantic import BaseModel, Field


class WebhookConfig(BaseModel):
    """Platform-specific webhook settings."""
    webhook_url: Optional[str] = None
    bot_token: Optional[str] = None
    chat_id: Optional[str] = None


class TriggerNotification(BaseModel):
    """Request to send a test notification."""
    monitor_id: int
    type: str = Field(..., pattern="^webhook$")
    platform: str = Field(..., pattern="^(telegram|slack|discord)$")
    config: WebhookConfig


class TriggerNotificationResponse(BaseModel):
    success: bool
    msg: str
