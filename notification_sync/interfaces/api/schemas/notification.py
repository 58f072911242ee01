"""Pydantic models describing the local notification API payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from notification_sync.application import SyncState
from notification_sync.domain.entities import Notification


class NotificationRead(BaseModel):
    """Representation of a notification delivered to the client."""

    id: str
    user_id: str
    type: str
    title: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    is_read: bool
    created_at: datetime
    read_at: datetime | None = None

    @classmethod
    def from_entity(cls, notification: Notification) -> "NotificationRead":
        return cls(
            id=notification.id,
            user_id=notification.user_id,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            data=dict(notification.data),
            is_read=notification.is_read,
            created_at=notification.created_at,
            read_at=notification.read_at,
        )


class SyncStateRead(BaseModel):
    """Read-only projection of the synchronized store."""

    notifications: list[NotificationRead]
    unread_count: int
    generation: int
    subscription: str
    loading: bool
    error: str | None = None

    @classmethod
    def from_state(
        cls,
        state: SyncState,
        *,
        read_filter: Literal["all", "unread", "read"] = "all",
        notification_type: str | None = None,
    ) -> "SyncStateRead":
        items = state.view.filtered(read_filter, notification_type=notification_type)
        return cls(
            notifications=[NotificationRead.from_entity(n) for n in items],
            unread_count=state.view.unread_count,
            generation=state.view.generation,
            subscription=state.subscription.value,
            loading=state.loading,
            error=state.error,
        )


class MutationResultRead(BaseModel):
    """Outcome of a local mutation."""

    applied: bool = Field(..., description="Whether the server confirmed a change")
    unread_count: int


class SessionCreate(BaseModel):
    """Credentials used to open the notification session of a user."""

    user_id: str = Field(..., min_length=1)
    access_token: str = Field(..., min_length=1)


class ChangeIngest(BaseModel):
    """Row change forwarded from the database change feed."""

    event: Literal["INSERT", "UPDATE", "DELETE"]
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None


class ChangeIngestResult(BaseModel):
    delivered: int


class HealthRead(BaseModel):
    """Liveness of the notification session."""

    session: bool
    channel_active: bool
    subscription: str | None = None


__all__ = [
    "ChangeIngest",
    "ChangeIngestResult",
    "HealthRead",
    "MutationResultRead",
    "NotificationRead",
    "SessionCreate",
    "SyncStateRead",
]
