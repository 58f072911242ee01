"""Pydantic models describing persistence API and change feed payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from notification_sync.domain.entities import ChangeEvent, ChangeKind, Notification, NotificationType
from notification_sync.utils import ensure_app_timezone, parse_timestamp

_KNOWN_TYPES = {member.value for member in NotificationType}


class NotificationPayload(BaseModel):
    """Notification row as emitted by the API (camelCase) or the change feed (snake_case)."""

    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")

    id: str = Field(..., min_length=1)
    user_id: str = Field(..., validation_alias=AliasChoices("user_id", "userId"))
    type: str
    title: str = ""
    message: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    is_read: bool = Field(False, validation_alias=AliasChoices("is_read", "isRead"))
    created_at: datetime = Field(
        ..., validation_alias=AliasChoices("created_at", "createdAt")
    )
    read_at: datetime | None = Field(
        None, validation_alias=AliasChoices("read_at", "readAt")
    )

    @field_validator("data", mode="before")
    @classmethod
    def _default_data(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        """Map known tags onto the canonical vocabulary; keep unknown ones verbatim."""

        if isinstance(value, str):
            candidate = value.strip().lower()
            if candidate in _KNOWN_TYPES:
                return NotificationType(candidate).value
        return value

    @field_validator("created_at", "read_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        try:
            return parse_timestamp(value)
        except ValueError:
            return value

    def to_entity(self) -> Notification:
        return Notification(
            id=self.id,
            user_id=self.user_id,
            type=self.type,
            title=self.title,
            message=self.message,
            data=dict(self.data),
            is_read=self.is_read,
            created_at=ensure_app_timezone(self.created_at),
            read_at=ensure_app_timezone(self.read_at),
        )


class NotificationListData(BaseModel):
    notifications: list[NotificationPayload] = Field(default_factory=list)
    unread_count: int | None = Field(
        None, validation_alias=AliasChoices("unreadCount", "unread_count")
    )


class NotificationListResponse(BaseModel):
    """Body of ``GET /notifications``."""

    status: str
    data: NotificationListData


class UnreadCountData(BaseModel):
    count: int = Field(..., ge=0)


class UnreadCountResponse(BaseModel):
    """Body of ``GET /notifications/unread-count``."""

    status: str
    data: UnreadCountData


class _RowIdentity(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")

    id: str = Field(..., min_length=1)


class ChangeMessage(BaseModel):
    """Row-change message delivered by the push channel."""

    event: Literal["INSERT", "UPDATE", "DELETE"] = Field(
        ..., validation_alias=AliasChoices("event", "eventType", "type")
    )
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None

    def to_event(self, *, epoch: int) -> ChangeEvent:
        """Convert the message into a :class:`ChangeEvent` tagged with ``epoch``."""

        kind = ChangeKind(self.event)
        if kind is ChangeKind.DELETE:
            source = self.old or self.new
            if not source:
                raise ValueError("DELETE change without a row identifier")
            identity = _RowIdentity.model_validate(source)
            return ChangeEvent(kind=kind, notification_id=identity.id, epoch=epoch)

        if not self.new:
            raise ValueError(f"{kind.value} change without a new row")
        notification = NotificationPayload.model_validate(self.new).to_entity()
        return ChangeEvent(
            kind=kind, notification_id=notification.id, new=notification, epoch=epoch
        )


__all__ = [
    "ChangeMessage",
    "NotificationListResponse",
    "NotificationPayload",
    "UnreadCountResponse",
]
