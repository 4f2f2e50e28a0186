from __future__ import annotations

from typing import Any

import pytest
import pytest_asyncio

from uptimecore import models  # noqa: F401  (registers tables)
from uptimecore.database import Base, create_engine_for, create_session_factory
from uptimecore.models import Monitor, Notification
from uptimecore.services.network import WebhookResult


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'uptimecore-test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield create_session_factory(engine)
    finally:
        await engine.dispose()


async def add_rows(session_factory, *rows):
    async with session_factory() as session:
        session.add_all(rows)
        await session.commit()
    return rows


@pytest_asyncio.fixture
async def http_monitor(session_factory) -> Monitor:
    monitor = Monitor(name="Website", type="http", url="http://example.test", status=True)
    await add_rows(session_factory, monitor)
    return monitor


@pytest_asyncio.fixture
async def hardware_monitor(session_factory) -> Monitor:
    monitor = Monitor(
        name="Server",
        type="hardware",
        url="http://server.test/api/v1/metrics",
        status=True,
        thresholds={"usage_cpu": 0.8, "usage_memory": 0.9, "usage_disk": 0.85},
    )
    await add_rows(session_factory, monitor)
    return monitor


def email_notification(monitor_id: int, **kwargs: Any) -> Notification:
    return Notification(monitor_id=monitor_id, type="email", address="ops@example.test", **kwargs)


def webhook_notification(monitor_id: int, platform: str, **config: Any) -> Notification:
    return Notification(monitor_id=monitor_id, type="webhook", platform=platform, config=config)


class FakeEmailSender:
    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def build_and_send_email(self, template: str, context: dict, address: str, subject: str) -> bool:
        self.sent.append({"template": template, "context": context, "address": address, "subject": subject})
        return True


class FakeNetwork:
    def __init__(self, status: bool = True) -> None:
        self.status = status
        self.webhooks: list[tuple[str, str, dict]] = []

    async def request_webhook(self, platform: str, url: str, message: dict) -> WebhookResult:
        self.webhooks.append((platform, url, message))
        return WebhookResult(status=self.status, code=200 if self.status else 500, message="sent")


@pytest.fixture
def fake_email() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def fake_network() -> FakeNetwork:
    return FakeNetwork()
