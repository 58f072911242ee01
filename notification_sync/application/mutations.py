"""Optimistic local mutations confirmed against the persistence API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Generic, TypeVar

from notification_sync.domain.entities import Notification
from notification_sync.domain.errors import MutationError, StaleEventError
from notification_sync.infrastructure.api import ApiRequestError
from notification_sync.utils import now_in_app_timezone

from .ports import PersistenceApi
from .store import (
    DiscardTombstone,
    MarkAllRead,
    MarkRead,
    NotificationStore,
    ReinsertTombstone,
    RemoveNotification,
    RestoreRecords,
    Tombstone,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class OptimisticChange(Generic[T]):
    """Hooks of one optimistic transaction.

    ``apply`` captures the pre-state and writes the optimistic change,
    returning whatever ``rollback`` and ``commit`` need. ``reconfirm`` runs
    instead of ``commit`` when a re-bootstrap happened while the server call
    was in flight.
    """

    operation: str
    notification_id: str | None
    apply: Callable[[], T]
    confirm: Callable[[], Awaitable[None]]
    rollback: Callable[[T], None]
    commit: Callable[[T], None] = lambda _state: None
    reconfirm: Callable[[T], None] = lambda _state: None


class MutationCoordinator:
    """Issue mark-read, mark-all-read and delete with optimistic updates.

    Each operation snapshots the affected records, applies the change to the
    store immediately, then awaits the server. A failed confirmation rolls
    the change back and raises :class:`MutationError`. Rollbacks only touch
    records that still hold the optimistic values, so anything the event
    stream delivered meanwhile is preserved. When the store was re-bootstrapped
    while the call was in flight the snapshot is authoritative: a failure is
    discarded silently and a success is re-applied only where still consistent.
    """

    def __init__(
        self,
        store: NotificationStore,
        api: PersistenceApi,
        *,
        clock: Callable[[], datetime] = now_in_app_timezone,
        is_closed: Callable[[], bool] = lambda: False,
    ) -> None:
        self._store = store
        self._api = api
        self._clock = clock
        self._is_closed = is_closed

    async def mark_read(self, notification_id: str) -> bool:
        """Mark one notification read; ``False`` when nothing was sent or kept."""

        current = self._store.get(notification_id)
        if current is None:
            logger.info("Cannot mark unknown notification %s as read", notification_id)
            return False
        if current.is_read:
            return False

        read_at = self._clock()

        def apply() -> tuple[tuple[Notification, Notification], ...]:
            original = self._store.apply(MarkRead(notification_id, read_at))
            return self._pairs((original,))

        def reconfirm(_pairs: tuple[tuple[Notification, Notification], ...]) -> None:
            self._store.apply(MarkRead(notification_id, read_at))

        return await self._run(
            OptimisticChange(
                operation="mark_read",
                notification_id=notification_id,
                apply=apply,
                confirm=lambda: self._api.mark_read(notification_id),
                rollback=lambda pairs: self._store.apply(RestoreRecords(pairs)),
                reconfirm=reconfirm,
            )
        )

    async def mark_all_read(self) -> bool:
        """Mark every notification read with one bulk call."""

        read_at = self._clock()

        def apply() -> tuple[tuple[Notification, Notification], ...]:
            originals = self._store.apply(MarkAllRead(read_at))
            return self._pairs(originals)

        def reconfirm(pairs: tuple[tuple[Notification, Notification], ...]) -> None:
            for _optimistic, original in pairs:
                self._store.apply(MarkRead(original.id, read_at))

        return await self._run(
            OptimisticChange(
                operation="mark_all_read",
                notification_id=None,
                apply=apply,
                confirm=self._api.mark_all_read,
                rollback=lambda pairs: self._store.apply(RestoreRecords(pairs)),
                reconfirm=reconfirm,
            )
        )

    async def delete_notification(self, notification_id: str) -> bool:
        """Delete one notification, keeping a tombstone until the server answers."""

        if notification_id not in self._store:
            logger.info("Cannot delete unknown notification %s", notification_id)
            return False

        def apply() -> Tombstone | None:
            return self._store.apply(
                RemoveNotification(notification_id, keep_tombstone=True)
            )

        def reconfirm(_tombstone: Tombstone | None) -> None:
            self._store.apply(RemoveNotification(notification_id))

        return await self._run(
            OptimisticChange(
                operation="delete",
                notification_id=notification_id,
                apply=apply,
                confirm=lambda: self._api.delete(notification_id),
                rollback=lambda _t: self._store.apply(ReinsertTombstone(notification_id)),
                commit=lambda _t: self._store.apply(DiscardTombstone(notification_id)),
                reconfirm=reconfirm,
            )
        )

    async def _run(self, change: OptimisticChange[T]) -> bool:
        generation = self._store.generation
        state = change.apply()
        try:
            await change.confirm()
        except ApiRequestError as exc:
            try:
                self._ensure_current(change, generation)
            except StaleEventError as stale:
                logger.debug("%s", stale)
                return False
            change.rollback(state)
            logger.warning(
                "%s for %s failed, optimistic change rolled back: %s",
                change.operation,
                change.notification_id or "all notifications",
                exc,
            )
            raise MutationError(
                f"{change.operation} failed: {exc}",
                operation=change.operation,
                notification_id=change.notification_id,
                status_code=exc.status_code,
            ) from exc

        try:
            self._ensure_current(change, generation)
        except StaleEventError as stale:
            logger.debug("%s", stale)
            if not self._is_closed():
                change.reconfirm(state)
            return True
        change.commit(state)
        return True

    def _ensure_current(self, change: OptimisticChange[T], generation: int) -> None:
        if self._is_closed():
            raise StaleEventError(
                f"Discarding {change.operation} confirmation for a closed session"
            )
        if self._store.generation != generation:
            raise StaleEventError(
                f"Confirmation of {change.operation} issued against generation "
                f"{generation} arrived at generation {self._store.generation}"
            )

    def _pairs(
        self, originals: tuple[Notification | None, ...]
    ) -> tuple[tuple[Notification, Notification], ...]:
        pairs: list[tuple[Notification, Notification]] = []
        for original in originals:
            if original is None:
                continue
            optimistic = self._store.get(original.id)
            if optimistic is not None:
                pairs.append((optimistic, original))
        return tuple(pairs)


__all__ = ["MutationCoordinator", "OptimisticChange"]
