"""Error taxonomy of the synchronization core."""

from __future__ import annotations


class NotificationSyncError(RuntimeError):
    """Base class for errors raised by the synchronization core."""


class TransportError(NotificationSyncError):
    """The push channel disconnected or could not be opened."""


class FetchError(NotificationSyncError):
    """A bootstrap fetch failed; the store was left untouched."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MutationError(NotificationSyncError):
    """A confirmation call failed and the optimistic change was rolled back."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        notification_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.notification_id = notification_id
        self.status_code = status_code


class StaleEventError(NotificationSyncError):
    """An event or confirmation belongs to a superseded epoch or generation.

    Raised and caught inside the core only; it is expected steady-state
    behaviour and is never surfaced to callers.
    """


__all__ = [
    "NotificationSyncError",
    "TransportError",
    "FetchError",
    "MutationError",
    "StaleEventError",
]
