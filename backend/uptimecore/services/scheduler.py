"""Scheduler service - runs probe cycles for active monitors.

Scheduling Design:
- A single APScheduler job ticks every few seconds and picks monitors whose
  interval has elapsed since their last cycle
- At most one cycle per monitor is in flight at any time
- Concurrent cycles are limited with a semaphore
"""
import asyncio
import logging
from datetime import datetime
from typing import Dict, Optional, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..config import settings
from ..database import async_session
from ..models import Monitor
from .network import NetworkService, network_service
from .notifier import NotificationService, notification_service
from .status import StatusService, StatusUpdate, status_service

logger = logging.getLogger(__name__)


class MonitorCycle:
    """One probe cycle: probe, update status, alert."""

    def __init__(
        self,
        network: Optional[NetworkService] = None,
        status: Optional[StatusService] = None,
        notifier: Optional[NotificationService] = None,
    ):
        self.network = network or network_service
        self.status = status or status_service
        self.notifier = notifier or notification_service

    async def run(self, monitor: Monitor) -> Optional[StatusUpdate]:
        """Run a cycle for ``monitor``.

        Returns None for distributed_http monitors, whose status is updated
        when the callback arrives.
        """
        probe = await self.network.get_status(monitor)
        if probe is None:
            return None
        update = await self.status.update_status(probe)
        await self.notifier.handle_notifications(update)
        return update


class SchedulerService:
    """Service for scheduling and running periodic probe cycles."""

    def __init__(
        self,
        cycle: Optional[MonitorCycle] = None,
        session_factory: Optional[async_sessionmaker] = None,
    ):
        self.cycle = cycle or MonitorCycle()
        self.session_factory = session_factory or async_session
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._last_run: Dict[int, datetime] = {}
        self._in_flight: Set[int] = set()

    def start(self):
        """Start the scheduler."""
        if self._running:
            return

        tick = settings.scheduler_tick_seconds
        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self._run_checks,
            trigger=IntervalTrigger(seconds=tick),
            id="run_checks",
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=tick,
        )
        self.scheduler.start()
        self._running = True
        logger.info(f"Scheduler started (tick={tick}s, max_concurrent={settings.max_concurrent_checks})")

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    def is_due(self, monitor_id: int, interval_ms: int, now: Optional[datetime] = None) -> bool:
        """Determine if a monitor is due for a cycle.

        Monitors that never ran are due immediately; monitors with a cycle
        still in flight are never due.
        """
        if monitor_id in self._in_flight:
            return False
        last_run = self._last_run.get(monitor_id)
        if last_run is None:
            return True
        now = now or datetime.utcnow()
        elapsed = (now - last_run).total_seconds()
        # Half a tick of slack so a monitor is not pushed to the next tick
        return elapsed >= (interval_ms / 1000) - settings.scheduler_tick_seconds / 2

    async def _run_checks(self):
        """Run cycles for monitors that are due."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(Monitor).where(Monitor.is_active.is_(True)))
                monitors = list(result.scalars().all())

            due = [m for m in monitors if self.is_due(m.id, m.interval or 60000)]
            if not due:
                return

            logger.debug(f"Running {len(due)} due monitors out of {len(monitors)} active")
            semaphore = asyncio.Semaphore(settings.max_concurrent_checks)

            async def run_with_limit(monitor: Monitor):
                async with semaphore:
                    await self.run_monitor(monitor)

            await asyncio.gather(*[run_with_limit(m) for m in due])
        except Exception as e:
            logger.error(f"Error running checks: {e}")

    async def run_monitor(self, monitor: Monitor):
        """Run one cycle for a monitor, logging rather than raising failures."""
        if monitor.id in self._in_flight:
            logger.debug(f"Cycle for monitor {monitor.id} already in flight")
            return
        self._in_flight.add(monitor.id)
        self._last_run[monitor.id] = datetime.utcnow()
        try:
            await self.cycle.run(monitor)
        except Exception as e:
            logger.error(f"Error checking monitor {monitor.id}: {type(e).__name__}: {e}")
        finally:
            self._in_flight.discard(monitor.id)


# Global instance
scheduler_service = SchedulerService()
