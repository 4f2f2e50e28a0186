"""Distributed uptime service - ingests results posted back by the probe network."""
import logging
from typing import Optional

from ..utils import messages
from .network import NETWORK_ERROR, ProbeResult, Timings, TYPE_DISTRIBUTED_HTTP
from .notifier import NotificationService, notification_service
from .status import StatusService, StatusUpdate, status_service

logger = logging.getLogger(__name__)

NANOSECONDS_PER_MS = 1_000_000


def build_probe_result(monitor_id, result: dict) -> ProbeResult:
    """Turn a raw distributed probe result into a ProbeResult."""
    status_code = result.get("status_code") or 0
    error = result.get("error") or ""
    first_byte_took = result.get("first_byte_took") or 0

    status = not (status_code >= 400 or error != "")

    if error:
        code = status_code or NETWORK_ERROR
        message = messages.status_phrase(code, messages.DISTRIBUTED_NETWORK_ERROR)
    else:
        code = status_code
        message = messages.status_phrase(status_code)

    return ProbeResult(
        monitor_id=monitor_id,
        type=TYPE_DISTRIBUTED_HTTP,
        status=status,
        code=code,
        message=message,
        response_time=first_byte_took / NANOSECONDS_PER_MS,
        payload=result,
        timings=Timings(
            dns_took=result.get("dns_took"),
            conn_took=result.get("conn_took"),
            connect_took=result.get("connect_took"),
            tls_took=result.get("tls_took"),
            first_byte_took=result.get("first_byte_took"),
            body_read_took=result.get("body_read_took"),
        ),
    )


class DistributedUptimeService:
    """Re-enters the status and alerting pipeline for distributed_http monitors."""

    def __init__(
        self,
        status: Optional[StatusService] = None,
        notifier: Optional[NotificationService] = None,
    ):
        self.status = status or status_service
        self.notifier = notifier or notification_service

    async def ingest_result(self, monitor_id, result: dict) -> StatusUpdate:
        probe = build_probe_result(monitor_id, result)
        logger.debug(
            f"Distributed result for monitor {monitor_id}: status={probe.status} code={probe.code} "
            f"location={result.get('city')}, {result.get('country_code')}"
        )
        update = await self.status.update_status(probe)
        await self.notifier.handle_notifications(update)
        return update


# Global instance
distributed_uptime_service = DistributedUptimeService()
