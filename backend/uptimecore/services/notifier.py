"""Notification service - status-change and hardware threshold alerts."""
import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..database import async_session
from ..errors import NotificationConfigError
from ..models import Monitor, Notification
from ..utils import messages
from ..utils.db_utils import retry_on_lock
from ..utils.tasks import BackgroundTasks
from . import store
from .email_sender import (
    EmailSenderService,
    HARDWARE_INCIDENT_TEMPLATE,
    SERVER_IS_DOWN_TEMPLATE,
    SERVER_IS_UP_TEMPLATE,
    email_sender_service,
)
from .network import NetworkService, TYPE_HARDWARE, network_service
from .status import StatusUpdate

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE_URL = "https://api.telegram.org/bot"
PLATFORM_TYPES = ("telegram", "slack", "discord")

MESSAGE_FORMATTERS = {
    "telegram": lambda text, chat_id: {"chat_id": chat_id, "text": text},
    "slack": lambda text, chat_id: {"text": text},
    "discord": lambda text, chat_id: {"content": text},
}

HARDWARE_METRICS = ("cpu", "memory", "disk")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _breached(usage, threshold) -> bool:
    # Missing or null readings never count as a breach
    if not _is_number(usage) or not _is_number(threshold):
        return False
    return threshold != -1 and usage > threshold


def _percent(value) -> str:
    return f"{value * 100:.0f}%" if _is_number(value) else "N/A"


def _disks(metrics: dict) -> list:
    disks = metrics.get("disk")
    return [d for d in disks if isinstance(d, dict)] if isinstance(disks, list) else []


class NotificationService:
    """Decides whether a probe cycle warrants alerts and dispatches them."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        network: Optional[NetworkService] = None,
        email_sender: Optional[EmailSenderService] = None,
    ):
        self.session_factory = session_factory or async_session
        self.network = network or network_service
        self.email_sender = email_sender or email_sender_service
        self.background = BackgroundTasks()

    def format_notification_message(
        self,
        monitor: Monitor,
        status: bool,
        platform: str,
        chat_id: Optional[str] = None,
    ) -> Optional[dict]:
        """Build the webhook body for ``platform``, or None if unsupported."""
        if platform not in PLATFORM_TYPES:
            return None
        text = messages.monitor_status(monitor.name, status, monitor.url)
        return MESSAGE_FORMATTERS[platform](text, chat_id)

    async def send_webhook_notification(self, update: StatusUpdate, notification: Notification) -> bool:
        """Send a status-change message to a webhook platform.

        Raises NotificationConfigError when a Telegram notification lacks
        its bot token or chat id.
        """
        platform = notification.platform
        config = notification.config or {}

        if platform not in PLATFORM_TYPES:
            logger.warning(messages.WEBHOOK_UNSUPPORTED_PLATFORM.format(platform=platform))
            return False

        url = config.get("webhook_url")
        chat_id = config.get("chat_id")
        if platform == "telegram":
            bot_token = config.get("bot_token")
            if not bot_token or not chat_id:
                raise NotificationConfigError(
                    "Missing required fields for Telegram notification",
                    service="NotificationService",
                    method="send_webhook_notification",
                )
            url = f"{TELEGRAM_API_BASE_URL}{bot_token}/sendMessage"

        if not url:
            raise NotificationConfigError(
                f"Missing webhook URL for {platform} notification",
                service="NotificationService",
                method="send_webhook_notification",
            )

        message = self.format_notification_message(update.monitor, update.status, platform, chat_id)
        try:
            response = await self.network.request_webhook(platform, url, message)
            return response.status
        except Exception as e:
            logger.error(
                f"{messages.WEBHOOK_SEND_ERROR.format(platform=platform)}: {e} "
                f"(url={url}, payload={message!r})"
            )
            return False

    def send_email(self, update: StatusUpdate, address: str) -> bool:
        """Queue an up/down email. Delivery failures are only logged."""
        monitor = update.monitor
        template = SERVER_IS_UP_TEMPLATE if update.prev_status is False else SERVER_IS_DOWN_TEMPLATE
        context = {"monitor": monitor.name, "url": monitor.url}
        subject = f"Monitor {monitor.name} is {'up' if update.status is True else 'down'}"
        self.background.spawn(self.email_sender.build_and_send_email(template, context, address, subject))
        return True

    def send_hardware_email(self, update: StatusUpdate, address: str, alerts: List[str]) -> bool:
        """Queue one email carrying every hardware alert line for a notification."""
        if not alerts:
            return False
        monitor = update.monitor
        context = {"monitor": monitor.name, "url": monitor.url, "alerts": alerts}
        subject = f"Monitor {monitor.name} infrastructure alerts"
        self.background.spawn(
            self.email_sender.build_and_send_email(HARDWARE_INCIDENT_TEMPLATE, context, address, subject)
        )
        return True

    async def handle_status_notifications(self, update: StatusUpdate) -> bool:
        """Notify every channel of a monitor about an up/down transition.

        The first observation of a monitor (no previous status) is not an
        incident and sends nothing. Channels are processed one after another.
        """
        if not update.status_changed:
            return False
        if update.prev_status is None:
            logger.debug(f"Skipping status alert for {update.monitor.name}: first check")
            return False

        async with self.session_factory() as session:
            notifications = await store.get_notifications_by_monitor_id(session, update.monitor.id)

        for notification in notifications:
            try:
                if notification.type == "email":
                    self.send_email(update, notification.address)
                elif notification.type == "webhook":
                    await self.send_webhook_notification(update, notification)
            except Exception as e:
                logger.warning(
                    f"Failed to send {notification.type} notification {notification.id} "
                    f"for monitor {update.monitor.name}: {type(e).__name__}: {e} "
                    f"(platform={notification.platform}, config={notification.config!r})"
                )
        return True

    def _active_alerts(self, thresholds: dict, metrics: dict) -> dict:
        cpu_threshold = thresholds.get("usage_cpu", -1)
        memory_threshold = thresholds.get("usage_memory", -1)
        disk_threshold = thresholds.get("usage_disk", -1)

        cpu_usage = (metrics.get("cpu") or {}).get("usage_percent", -1)
        memory_usage = (metrics.get("memory") or {}).get("usage_percent", -1)
        disks = _disks(metrics)

        return {
            "cpu": _breached(cpu_usage, cpu_threshold),
            "memory": _breached(memory_usage, memory_threshold),
            "disk": any(_breached(d.get("usage_percent"), disk_threshold) for d in disks),
        }

    def _format_alert(self, metric: str, thresholds: dict, metrics: dict) -> str:
        if metric == "disk":
            usages = ", ".join(
                f"(Disk{idx}: {_percent(d.get('usage_percent'))})"
                for idx, d in enumerate(_disks(metrics))
            )
            return (
                f"Your current disk usage: {usages} is above your threshold "
                f"({_percent(thresholds['usage_disk'])})"
            )
        label = "CPU" if metric == "cpu" else "memory"
        usage = metrics[metric]["usage_percent"]
        threshold = thresholds[f"usage_{metric}"]
        return f"Your current {label} usage ({_percent(usage)}) is above your threshold ({_percent(threshold)})"

    async def handle_hardware_notifications(self, update: StatusUpdate) -> bool:
        """Count down per-metric counters and alert when one runs out.

        Every cycle where a metric is above its threshold decrements that
        metric's counter on each notification. Reaching zero resets the
        counter to ``alert_threshold`` and produces an alert line, so a
        sustained breach alerts once every ``alert_threshold`` cycles.
        """
        thresholds = update.monitor.thresholds
        if not thresholds:
            return False

        payload = update.probe.payload
        metrics = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(metrics, dict):
            return False

        alerts = self._active_alerts(thresholds, metrics)

        async with self.session_factory() as session:
            notifications = await store.get_notifications_by_monitor_id(session, update.monitor.id)

            for notification in notifications:
                alerts_to_send = []
                for metric in HARDWARE_METRICS:
                    if not alerts[metric]:
                        continue
                    counter = f"{metric}_alert_threshold"
                    remaining = (getattr(notification, counter) or 0) - 1
                    if remaining <= 0:
                        remaining = notification.alert_threshold
                        alerts_to_send.append(self._format_alert(metric, thresholds, metrics))
                    setattr(notification, counter, remaining)

                await retry_on_lock(session.commit)

                if not alerts_to_send:
                    continue
                logger.info(
                    f"Hardware alerts for {update.monitor.name} via notification {notification.id}: "
                    f"{len(alerts_to_send)}"
                )
                # Webhook channels only receive status-change alerts
                if notification.type == "email":
                    self.send_hardware_email(update, notification.address, alerts_to_send)
        return True

    async def handle_notifications(self, update: StatusUpdate) -> bool:
        """Run both alert tracks for a completed probe cycle. Never raises."""
        if update.monitor.type == TYPE_HARDWARE:
            try:
                await self.handle_hardware_notifications(update)
            except Exception as e:
                logger.warning(f"Hardware notifications failed for {update.monitor.name}: {type(e).__name__}: {e}")
        try:
            await self.handle_status_notifications(update)
        except Exception as e:
            logger.warning(f"Status notifications failed for {update.monitor.name}: {type(e).__name__}: {e}")
            return False
        return True

    async def drain(self):
        """Wait for queued emails."""
        await self.background.drain()


# Global instance
notification_service = NotificationService()
