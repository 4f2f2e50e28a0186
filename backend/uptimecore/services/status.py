"""Status service - records checks and detects monitor status transitions."""
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import async_session
from ..errors import MonitorNotFoundError
from ..models import Monitor
from ..utils.db_utils import retry_on_lock
from ..utils.messages import status_string
from ..utils.tasks import BackgroundTasks
from . import store
from .check_builder import build_check
from .network import (
    ProbeResult,
    TYPE_DISTRIBUTED_HTTP,
    TYPE_DOCKER,
    TYPE_HARDWARE,
    TYPE_HTTP,
    TYPE_PAGESPEED,
    TYPE_PING,
    TYPE_PORT,
)

logger = logging.getLogger(__name__)

CheckWriter = Callable[[AsyncSession, dict], Awaitable[object]]

CHECK_WRITERS: dict[str, CheckWriter] = {
    TYPE_HTTP: store.create_check,
    TYPE_PING: store.create_check,
    TYPE_DOCKER: store.create_check,
    TYPE_PORT: store.create_check,
    TYPE_PAGESPEED: store.create_pagespeed_check,
    TYPE_HARDWARE: store.create_hardware_check,
    TYPE_DISTRIBUTED_HTTP: store.create_distributed_check,
}


@dataclass
class StatusUpdate:
    """Result of applying a probe result to its monitor."""
    monitor: Monitor
    probe: ProbeResult
    status_changed: bool
    prev_status: Optional[bool]

    @property
    def status(self) -> bool:
        return self.probe.status


class StatusService:
    """Persists checks and keeps ``Monitor.status`` in step with probe results."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or async_session
        self.background = BackgroundTasks()

    async def insert_check(self, probe: ProbeResult):
        """Write the check for a probe result. Failures are logged, never raised."""
        try:
            writer = CHECK_WRITERS.get(probe.type)
            if writer is None:
                raise ValueError(f"No check writer for type: {probe.type}")
            check = build_check(probe)
            async with self.session_factory() as session:
                return await writer(session, check)
        except Exception as e:
            logger.error(f"Error inserting check for monitor {probe.monitor_id}: {type(e).__name__}: {e}")
            return None

    async def update_status(self, probe: ProbeResult) -> StatusUpdate:
        """Apply a probe result to its monitor.

        The check insert runs in the background and is not awaited; the
        status comparison works on a separately loaded monitor. Failures
        loading or saving the monitor are logged and re-raised.
        """
        self.background.spawn(self.insert_check(probe))
        try:
            async with self.session_factory() as session:
                monitor = await store.get_monitor_by_id(session, probe.monitor_id)
                if monitor is None:
                    raise MonitorNotFoundError(probe.monitor_id)

                if monitor.status == probe.status:
                    return StatusUpdate(
                        monitor=monitor,
                        probe=probe,
                        status_changed=False,
                        prev_status=monitor.status,
                    )

                prev_status = monitor.status
                logger.info(
                    f"{monitor.name} went from {status_string(prev_status)} to {status_string(probe.status)}"
                )
                monitor.status = probe.status
                await retry_on_lock(session.commit)

                return StatusUpdate(
                    monitor=monitor,
                    probe=probe,
                    status_changed=True,
                    prev_status=prev_status,
                )
        except Exception as e:
            logger.error(f"Error updating status for monitor {probe.monitor_id}: {type(e).__name__}: {e}")
            raise

    async def drain(self):
        """Wait for outstanding check inserts."""
        await self.background.drain()


# Global instance
status_service = StatusService()
