"""Persistence calls used by the status and alerting services."""
from typing import List, Optional, Type

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Check, DistributedCheck, HardwareCheck, Monitor, Notification, PageSpeedCheck
from ..utils.db_utils import retry_on_lock


def _columns(model: Type, data: dict) -> dict:
    """Keep only the keys that map to columns of ``model``."""
    names = model.__table__.columns.keys()
    return {key: value for key, value in data.items() if key in names}


async def _insert(session: AsyncSession, model: Type, data: dict):
    row = model(**_columns(model, data))
    session.add(row)
    await retry_on_lock(session.commit)
    return row


async def create_check(session: AsyncSession, data: dict) -> Check:
    return await _insert(session, Check, data)


async def create_pagespeed_check(session: AsyncSession, data: dict) -> PageSpeedCheck:
    return await _insert(session, PageSpeedCheck, data)


async def create_hardware_check(session: AsyncSession, data: dict) -> HardwareCheck:
    return await _insert(session, HardwareCheck, data)


async def create_distributed_check(session: AsyncSession, data: dict) -> DistributedCheck:
    return await _insert(session, DistributedCheck, data)


async def get_monitor_by_id(session: AsyncSession, monitor_id) -> Optional[Monitor]:
    result = await session.execute(select(Monitor).where(Monitor.id == monitor_id))
    return result.scalar_one_or_none()


async def get_notifications_by_monitor_id(session: AsyncSession, monitor_id) -> List[Notification]:
    result = await session.execute(
        select(Notification)
        .where(Notification.monitor_id == monitor_id)
        .order_by(Notification.id)
    )
    return list(result.scalars().all())
