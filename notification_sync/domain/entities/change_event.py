"""Row-level change delivered by the push channel."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .notification import Notification


class ChangeKind(str, Enum):
    """Kinds of row change emitted for the notifications table."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    """A single inbound change tagged with the subscription epoch it arrived on.

    ``new`` is populated for INSERT and UPDATE. DELETE only guarantees the
    identifier, since the change feed may omit the rest of the old row.
    """

    kind: ChangeKind
    notification_id: str
    new: Notification | None = None
    epoch: int = 0


__all__ = ["ChangeEvent", "ChangeKind"]
