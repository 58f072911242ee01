"""Push store changes and local alerts to websocket listeners."""

from __future__ import annotations

import asyncio
from typing import Any

from anyio import from_thread

from notification_sync.application.store import StoreChange, StoreView
from notification_sync.domain.entities import Notification

from .manager import NotificationConnectionManager, notification_manager


class NotificationPublisher:
    """Serialize store activity and schedule its delivery to one user's sockets.

    Instances double as the reconciler's alert sink: :meth:`alert` is the
    best-effort local trigger raised for new unread notifications.
    """

    def __init__(self, manager: NotificationConnectionManager, user_id: str) -> None:
        self._manager = manager
        self._user_id = user_id

    def alert(self, notification: Notification) -> None:
        """Schedule a local alert carrying the notification title and message."""

        self._schedule_send(
            {
                "type": "alert",
                "data": {
                    "id": notification.id,
                    "title": notification.title,
                    "message": notification.message,
                    "notification_type": notification.type,
                },
            }
        )

    def publish_change(self, change: StoreChange, view: StoreView) -> None:
        """Schedule a ``change`` message describing ``change``."""

        by_id = {n.id: n for n in view.notifications}
        touched = [*change.added, *change.updated]
        self._schedule_send(
            {
                "type": "change",
                "data": {
                    "mutation": change.mutation,
                    "generation": change.generation,
                    "unread_count": change.unread_count,
                    "upserted": [
                        serialize_notification(by_id[i]) for i in touched if i in by_id
                    ],
                    "removed": list(change.removed),
                },
            }
        )

    def _schedule_send(self, message: dict[str, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            from_thread.run(self._manager.send_to_user, self._user_id, message)
        else:
            loop.create_task(self._manager.send_to_user(self._user_id, message))


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the websocket/JSON representation for ``notification``."""

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


def serialize_view(view: StoreView) -> dict[str, Any]:
    """Return the JSON representation of a full store projection."""

    return {
        "notifications": [serialize_notification(n) for n in view.notifications],
        "unread_count": view.unread_count,
        "generation": view.generation,
    }


def build_publisher(user_id: str) -> NotificationPublisher:
    """Publisher bound to the shared connection manager."""

    return NotificationPublisher(notification_manager, user_id)


__all__ = [
    "NotificationPublisher",
    "build_publisher",
    "serialize_notification",
    "serialize_view",
]
