"""Notification test endpoint."""
import logging

from fastapi import APIRouter, Depends, HTTPException

from ..errors import NotificationConfigError
from ..models import Monitor, Notification
from ..schemas.notification import TriggerNotification, TriggerNotificationResponse
from ..services.network import ProbeResult, TYPE_HTTP
from ..services.notifier import NotificationService, notification_service
from ..services.status import StatusUpdate
from ..utils import messages

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


def get_notification_service() -> NotificationService:
    return notification_service


@router.post("/trigger", response_model=TriggerNotificationResponse)
async def trigger_notification(
    data: TriggerNotification,
    service: NotificationService = Depends(get_notification_service),
):
    """Send a sample "monitor is down" message through a webhook configuration."""
    monitor = Monitor(id=data.monitor_id, name="Test Monitor", url="http://www.google.com")
    update = StatusUpdate(
        monitor=monitor,
        probe=ProbeResult(monitor_id=data.monitor_id, type=TYPE_HTTP, status=False, code=0),
        status_changed=True,
        prev_status=True,
    )
    notification = Notification(
        monitor_id=data.monitor_id,
        type=data.type,
        platform=data.platform,
        config=data.config.model_dump(exclude_none=True),
    )

    try:
        sent = await service.send_webhook_notification(update, notification)
    except NotificationConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not sent:
        logger.warning(f"Test {data.platform} notification for monitor {data.monitor_id} was not delivered")
        return TriggerNotificationResponse(
            success=False,
            msg=messages.WEBHOOK_SEND_ERROR.format(platform=data.platform),
        )
    return TriggerNotificationResponse(success=True, msg=messages.WEBHOOK_SEND_SUCCESS)
