"""Interfaces the synchronization core expects from its collaborators."""

from __future__ import annotations

from typing import Protocol

from notification_sync.infrastructure.api import NotificationPage


class PersistenceApi(Protocol):
    """Server-side notification endpoints used by the core."""

    async def list_notifications(self) -> NotificationPage: ...

    async def get_unread_count(self) -> int: ...

    async def mark_read(self, notification_id: str) -> None: ...

    async def mark_all_read(self) -> None: ...

    async def delete(self, notification_id: str) -> None: ...


__all__ = ["PersistenceApi"]
