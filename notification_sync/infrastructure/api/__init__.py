"""Persistence API adapter."""

from .client import ApiRequestError, NotificationApiClient, NotificationPage
from .schemas import ChangeMessage, NotificationPayload

__all__ = [
    "ApiRequestError",
    "ChangeMessage",
    "NotificationApiClient",
    "NotificationPage",
    "NotificationPayload",
]
