"""Apply inbound push events to the notification store."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping, Protocol

from pydantic import ValidationError

from notification_sync.domain.entities import ChangeEvent, ChangeKind, Notification
from notification_sync.domain.errors import StaleEventError
from notification_sync.infrastructure.api import ChangeMessage

from .store import InsertNotification, NotificationStore, RemoveNotification, UpsertNotification

logger = logging.getLogger(__name__)


class AlertSink(Protocol):
    """Best-effort local alert for freshly inserted unread notifications."""

    def alert(self, notification: Notification) -> None: ...


class EventReconciler:
    """Consume change events in arrival order and apply them idempotently.

    Messages from the channel are parsed and pushed onto a bounded queue; a
    single task (:meth:`run`) or an explicit :meth:`drain` pops them and
    applies them to the store. While a bootstrap fetch is outstanding
    (:meth:`hold`) events are parked and replayed in order by
    :meth:`release` once the snapshot is installed.
    """

    def __init__(
        self,
        store: NotificationStore,
        *,
        epoch_source: Callable[[], int],
        alert_sink: AlertSink | None = None,
        on_overflow: Callable[[], None] | None = None,
        queue_size: int = 256,
    ) -> None:
        self._store = store
        self._epoch_source = epoch_source
        self._alert_sink = alert_sink
        self._on_overflow = on_overflow
        self._queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=queue_size)
        self._holds = 0
        self._pending: list[ChangeEvent] = []

    @property
    def holding(self) -> bool:
        return self._holds > 0

    @property
    def pending(self) -> tuple[ChangeEvent, ...]:
        return tuple(self._pending)

    def submit(self, message: Mapping[str, Any], epoch: int) -> bool:
        """Parse a raw channel message and enqueue it; ``False`` if it was rejected."""

        try:
            event = ChangeMessage.model_validate(message).to_event(epoch=epoch)
        except (ValidationError, ValueError) as exc:
            logger.warning("Skipping malformed change message: %s", exc)
            return False
        return self.submit_event(event)

    def submit_event(self, event: ChangeEvent) -> bool:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                "Change queue full; dropping %s for %s and requesting a resync",
                event.kind.value,
                event.notification_id,
            )
            if self._on_overflow is not None:
                self._on_overflow()
            return False
        return True

    async def run(self) -> None:
        """Reconciliation loop; runs until cancelled."""

        while True:
            event = await self._queue.get()
            try:
                self._dispatch(event)
            finally:
                self._queue.task_done()

    def drain(self) -> int:
        """Process every queued event now and return how many were taken."""

        count = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return count
            try:
                self._dispatch(event)
            finally:
                self._queue.task_done()
            count += 1

    def hold(self) -> None:
        """Start parking events until the matching :meth:`release`."""

        self._holds += 1

    def release(self) -> int:
        """End one hold; on the last one replay parked events in arrival order."""

        if self._holds == 0:
            return 0
        self._holds -= 1
        if self._holds:
            return 0

        pending, self._pending = self._pending, []
        applied = 0
        for event in pending:
            if self._apply_current(event):
                applied += 1
        if pending:
            logger.debug("Replayed %s of %s buffered change events", applied, len(pending))
        return applied

    def apply(self, event: ChangeEvent) -> bool:
        """Apply ``event`` to the store; ``True`` when the store changed."""

        if event.kind is ChangeKind.INSERT:
            return self._insert(event.new)
        if event.kind is ChangeKind.UPDATE:
            return self._update(event.new)
        removed = self._store.apply(RemoveNotification(event.notification_id))
        return removed is not None

    def _dispatch(self, event: ChangeEvent) -> None:
        if self._holds:
            if self._is_current(event):
                self._pending.append(event)
            return
        self._apply_current(event)

    def _apply_current(self, event: ChangeEvent) -> bool:
        return self._is_current(event) and self.apply(event)

    def _is_current(self, event: ChangeEvent) -> bool:
        try:
            self._check_epoch(event)
        except StaleEventError as exc:
            logger.debug("%s", exc)
            return False
        return True

    def _check_epoch(self, event: ChangeEvent) -> None:
        current = self._epoch_source()
        if event.epoch != current:
            raise StaleEventError(
                f"Dropping {event.kind.value} for {event.notification_id} "
                f"from epoch {event.epoch} (current {current})"
            )

    def _insert(self, notification: Notification | None) -> bool:
        if notification is None:
            return False
        added = self._store.apply(InsertNotification(notification))
        if added and not notification.is_read:
            self._raise_alert(notification)
        return bool(added)

    def _update(self, notification: Notification | None) -> bool:
        if notification is None:
            return False
        before = self._store.get(notification.id)
        self._store.apply(UpsertNotification(notification))
        return before != notification

    def _raise_alert(self, notification: Notification) -> None:
        if self._alert_sink is None:
            return
        try:
            self._alert_sink.alert(notification)
        except Exception:  # pragma: no cover - alerts are best effort
            logger.exception("Local alert for notification %s failed", notification.id)


__all__ = ["AlertSink", "EventReconciler"]
