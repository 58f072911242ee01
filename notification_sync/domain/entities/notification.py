"""Domain entity representing a user notification."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class NotificationType(str, Enum):
    """Tags emitted by the marketplace backend.

    The store never interprets the tag; unknown values are kept verbatim on
    :attr:`Notification.type`.
    """

    ORDER_CREATED = "order_created"
    ORDER_ACCEPTED = "order_accepted"
    ORDER_DELIVERED = "order_delivered"
    ORDER_COMPLETED = "order_completed"
    ORDER_CANCELLED = "order_cancelled"
    REVISION_REQUESTED = "revision_requested"
    DELIVERY_UPLOADED = "delivery_uploaded"
    MESSAGE_RECEIVED = "message_received"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_PROCESSED = "payment_processed"
    AUTO_PAYMENT_PROCESSED = "auto_payment_processed"
    GIG_APPROVED = "gig_approved"
    GIG_REJECTED = "gig_rejected"


@dataclass(frozen=True)
class Notification:
    """Information message delivered to a specific user."""

    id: str
    user_id: str
    type: str
    title: str
    message: str
    created_at: datetime
    data: dict[str, Any] = field(default_factory=dict)
    is_read: bool = False
    read_at: datetime | None = None

    def sort_key(self) -> tuple[float, str]:
        """Key placing newer notifications first, ties broken by ``id``."""

        return (-self.created_at.timestamp(), self.id)


__all__ = ["Notification", "NotificationType"]
