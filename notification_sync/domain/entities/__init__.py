"""Domain entities exposed by the application."""

from .change_event import ChangeEvent, ChangeKind
from .notification import Notification, NotificationType

__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "Notification",
    "NotificationType",
]
