"""Realtime fan-out of store activity to websocket listeners."""

from .manager import NotificationConnectionManager, notification_manager
from .publisher import (
    NotificationPublisher,
    build_publisher,
    serialize_notification,
    serialize_view,
)

__all__ = [
    "NotificationConnectionManager",
    "notification_manager",
    "NotificationPublisher",
    "build_publisher",
    "serialize_notification",
    "serialize_view",
]
