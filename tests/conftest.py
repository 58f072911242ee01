"""Shared fixtures and fakes for the synchronization tests."""

from __future__ import annotations

import asyncio
import pathlib
import sys
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from notification_sync.config import Settings
from notification_sync.domain.entities import Notification
from notification_sync.infrastructure.api import ApiRequestError, NotificationPage

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def build_notification(
    notification_id: str,
    *,
    minutes: int = 0,
    is_read: bool = False,
    user_id: str = "user-1",
    notification_type: str = "order_created",
    title: str | None = None,
) -> Notification:
    return Notification(
        id=notification_id,
        user_id=user_id,
        type=notification_type,
        title=title or f"Title {notification_id}",
        message=f"Message {notification_id}",
        created_at=BASE_TIME + timedelta(minutes=minutes),
        is_read=is_read,
        read_at=BASE_TIME + timedelta(minutes=minutes + 1) if is_read else None,
    )


def build_row(notification: Notification) -> dict[str, Any]:
    """Change feed (snake_case) representation of ``notification``."""

    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "data": dict(notification.data),
        "is_read": notification.is_read,
        "created_at": notification.created_at.isoformat(),
        "read_at": notification.read_at.isoformat() if notification.read_at else None,
    }


class FakeApi:
    """In-memory persistence API whose calls can be delayed or failed."""

    def __init__(
        self,
        notifications: tuple[Notification, ...] = (),
        *,
        unread_count: int | None = None,
    ) -> None:
        self.page = NotificationPage(tuple(notifications), unread_count)
        self.server_unread_count = 0
        self.calls: list[tuple[str, str | None]] = []
        self.failures: dict[str, ApiRequestError] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.scripted_pages: list[tuple[Any, asyncio.Event | None]] = []

    def set_notifications(self, *notifications: Notification) -> None:
        self.page = NotificationPage(tuple(notifications), None)

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)

    async def list_notifications(self) -> NotificationPage:
        self.calls.append(("list", None))
        if self.scripted_pages:
            result, gate = self.scripted_pages.pop(0)
            if gate is not None:
                await gate.wait()
            if isinstance(result, Exception):
                raise result
            return result
        await self._pass("list")
        return self.page

    async def get_unread_count(self) -> int:
        self.calls.append(("unread_count", None))
        await self._pass("unread_count")
        return self.server_unread_count

    async def mark_read(self, notification_id: str) -> None:
        self.calls.append(("mark_read", notification_id))
        await self._pass("mark_read")

    async def mark_all_read(self) -> None:
        self.calls.append(("mark_all_read", None))
        await self._pass("mark_all_read")

    async def delete(self, notification_id: str) -> None:
        self.calls.append(("delete", notification_id))
        await self._pass("delete")

    async def _pass(self, operation: str) -> None:
        gate = self.gates.get(operation)
        if gate is not None:
            await gate.wait()
        failure = self.failures.get(operation)
        if failure is not None:
            raise failure


class RecordingSleep:
    """Replacement for ``asyncio.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class RecordingAlerts:
    def __init__(self) -> None:
        self.alerted: list[str] = []

    def alert(self, notification: Notification) -> None:
        self.alerted.append(notification.id)


async def settle(rounds: int = 50) -> None:
    """Let pending tasks run until the loop is idle."""

    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_base_url="http://persistence.test/api",
        page_size=20,
        event_queue_size=64,
        reconnect_initial_delay=0.5,
        reconnect_backoff_factor=2.0,
        reconnect_max_delay=4.0,
        max_reconnect_attempts=None,
    )


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def alerts() -> RecordingAlerts:
    return RecordingAlerts()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
