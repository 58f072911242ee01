"""In-memory notification store with a single mutation entry point."""

from __future__ import annotations

import logging
from bisect import bisect_left, insort
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Iterable, Literal

from notification_sync.domain.entities import Notification

logger = logging.getLogger(__name__)

ReadFilter = Literal["all", "unread", "read"]


@dataclass(frozen=True)
class StoreView:
    """Immutable projection handed to consumers of the store."""

    notifications: tuple[Notification, ...]
    unread_count: int
    generation: int

    def filtered(
        self, read_filter: ReadFilter = "all", *, notification_type: str | None = None
    ) -> tuple[Notification, ...]:
        """Return the notifications matching ``read_filter`` and ``notification_type``."""

        items: Iterable[Notification] = self.notifications
        if read_filter == "unread":
            items = (n for n in items if not n.is_read)
        elif read_filter == "read":
            items = (n for n in items if n.is_read)
        if notification_type:
            items = (n for n in items if n.type == notification_type)
        return tuple(items)


@dataclass(frozen=True)
class StoreChange:
    """Summary of one applied mutation, delivered to store listeners."""

    mutation: str
    generation: int
    unread_count: int
    added: tuple[str, ...] = ()
    updated: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()


@dataclass(frozen=True)
class Tombstone:
    """Copy of an optimistically removed record kept until confirmation."""

    notification: Notification
    position: int
    generation: int
    deleted_by_server: bool = False


# Mutation intents. Every change to the store is expressed as one of these and
# applied through NotificationStore.apply().


@dataclass(frozen=True)
class ReplaceSnapshot:
    notifications: tuple[Notification, ...]


@dataclass(frozen=True)
class InsertNotification:
    notification: Notification


@dataclass(frozen=True)
class UpsertNotification:
    notification: Notification


@dataclass(frozen=True)
class RemoveNotification:
    notification_id: str
    keep_tombstone: bool = False


@dataclass(frozen=True)
class MarkRead:
    notification_id: str
    read_at: datetime


@dataclass(frozen=True)
class MarkAllRead:
    read_at: datetime


@dataclass(frozen=True)
class RestoreRecords:
    """Put ``original`` back wherever the record still equals ``expected``."""

    pairs: tuple[tuple[Notification, Notification], ...]


@dataclass(frozen=True)
class ReinsertTombstone:
    notification_id: str


@dataclass(frozen=True)
class DiscardTombstone:
    notification_id: str


Mutation = (
    ReplaceSnapshot
    | InsertNotification
    | UpsertNotification
    | RemoveNotification
    | MarkRead
    | MarkAllRead
    | RestoreRecords
    | ReinsertTombstone
    | DiscardTombstone
)

StoreListener = Callable[[StoreChange], None]


@dataclass
class _Changes:
    added: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.added or self.updated or self.removed)


class NotificationStore:
    """Ordered notification collection plus its derived unread counter.

    The store is the only owner of notification state. Bootstrapper,
    EventReconciler and MutationCoordinator never touch the collection
    directly; they submit mutation intents to :meth:`apply`, which runs each
    one to completion synchronously so no two producers can interleave.
    """

    def __init__(self) -> None:
        self._items: list[Notification] = []
        self._by_id: dict[str, Notification] = {}
        self._unread = 0
        self._generation = 0
        self._tombstones: dict[str, Tombstone] = {}
        self._listeners: list[StoreListener] = []

    # -- read-only projection -------------------------------------------------

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def unread_count(self) -> int:
        return self._unread

    @property
    def notifications(self) -> tuple[Notification, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, notification_id: object) -> bool:
        return notification_id in self._by_id

    def get(self, notification_id: str) -> Notification | None:
        return self._by_id.get(notification_id)

    def tombstone(self, notification_id: str) -> Tombstone | None:
        return self._tombstones.get(notification_id)

    def view(self) -> StoreView:
        """Return an immutable snapshot of the current state."""

        return StoreView(
            notifications=tuple(self._items),
            unread_count=self._unread,
            generation=self._generation,
        )

    def add_listener(self, listener: StoreListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unregisters it."""

        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # -- single mutation entry point -----------------------------------------

    def apply(self, mutation: Mutation) -> Any:
        """Apply ``mutation`` atomically and notify listeners when state changed."""

        handler = self._handlers.get(type(mutation))
        if handler is None:
            raise TypeError(f"Unsupported store mutation: {type(mutation).__name__}")

        changes = _Changes()
        result = handler(self, mutation, changes)
        if changes or isinstance(mutation, ReplaceSnapshot):
            self._emit(type(mutation).__name__, changes)
        return result

    def _replace_snapshot(self, mutation: ReplaceSnapshot, changes: _Changes) -> int:
        items: list[Notification] = []
        by_id: dict[str, Notification] = {}
        for notification in mutation.notifications:
            if notification.id in by_id:
                logger.warning(
                    "Duplicate notification %s in snapshot; keeping the first copy",
                    notification.id,
                )
                continue
            by_id[notification.id] = notification
            items.append(notification)
        items.sort(key=Notification.sort_key)

        changes.removed.extend(i for i in self._by_id if i not in by_id)
        changes.added.extend(i for i in by_id if i not in self._by_id)
        changes.updated.extend(
            i for i, n in by_id.items() if i in self._by_id and self._by_id[i] != n
        )

        self._items = items
        self._by_id = by_id
        self._unread = sum(1 for n in items if not n.is_read)
        self._tombstones.clear()
        self._generation += 1
        return self._generation

    def _insert(self, mutation: InsertNotification, changes: _Changes) -> bool:
        notification = mutation.notification
        if notification.id in self._by_id:
            return False
        self._add(notification)
        changes.added.append(notification.id)
        return True

    def _upsert(self, mutation: UpsertNotification, changes: _Changes) -> Notification | None:
        notification = mutation.notification
        previous = self._by_id.get(notification.id)
        if previous is None:
            self._add(notification)
            changes.added.append(notification.id)
            return None
        if previous != notification:
            self._swap(previous, notification)
            changes.updated.append(notification.id)
        return previous

    def _remove(self, mutation: RemoveNotification, changes: _Changes) -> Tombstone | None:
        notification_id = mutation.notification_id
        pending = self._tombstones.get(notification_id)
        if pending is not None and not mutation.keep_tombstone:
            # The server already removed a record we are deleting optimistically.
            self._tombstones[notification_id] = replace(pending, deleted_by_server=True)

        current = self._by_id.get(notification_id)
        if current is None:
            return None

        position = self._discard(current)
        changes.removed.append(notification_id)
        tombstone = Tombstone(
            notification=current, position=position, generation=self._generation
        )
        if mutation.keep_tombstone:
            self._tombstones[notification_id] = tombstone
        return tombstone

    def _mark_read(self, mutation: MarkRead, changes: _Changes) -> Notification | None:
        current = self._by_id.get(mutation.notification_id)
        if current is None or current.is_read:
            return None
        self._swap(current, replace(current, is_read=True, read_at=mutation.read_at))
        changes.updated.append(current.id)
        return current

    def _mark_all_read(
        self, mutation: MarkAllRead, changes: _Changes
    ) -> tuple[Notification, ...]:
        originals = tuple(n for n in self._items if not n.is_read)
        for current in originals:
            self._swap(current, replace(current, is_read=True, read_at=mutation.read_at))
            changes.updated.append(current.id)
        return originals

    def _restore(self, mutation: RestoreRecords, changes: _Changes) -> tuple[str, ...]:
        restored: list[str] = []
        for expected, original in mutation.pairs:
            current = self._by_id.get(expected.id)
            if current is None:
                # Optimistically deleted meanwhile: fix the copy a rollback would reinsert.
                pending = self._tombstones.get(expected.id)
                if pending is not None and pending.notification == expected:
                    self._tombstones[expected.id] = replace(pending, notification=original)
                    restored.append(original.id)
                continue
            if current != expected:
                continue
            self._swap(current, original)
            changes.updated.append(original.id)
            restored.append(original.id)
        return tuple(restored)

    def _reinsert(self, mutation: ReinsertTombstone, changes: _Changes) -> bool:
        tombstone = self._tombstones.pop(mutation.notification_id, None)
        if tombstone is None or tombstone.deleted_by_server:
            return False
        if tombstone.notification.id in self._by_id:
            return False
        self._add(tombstone.notification, position=tombstone.position)
        changes.added.append(tombstone.notification.id)
        return True

    def _discard_tombstone(self, mutation: DiscardTombstone, changes: _Changes) -> bool:
        return self._tombstones.pop(mutation.notification_id, None) is not None

    _handlers: dict[type, Callable[["NotificationStore", Any, _Changes], Any]] = {
        ReplaceSnapshot: _replace_snapshot,
        InsertNotification: _insert,
        UpsertNotification: _upsert,
        RemoveNotification: _remove,
        MarkRead: _mark_read,
        MarkAllRead: _mark_all_read,
        RestoreRecords: _restore,
        ReinsertTombstone: _reinsert,
        DiscardTombstone: _discard_tombstone,
    }

    # -- collection primitives; each keeps the unread counter in step ---------

    def _add(self, notification: Notification, *, position: int | None = None) -> None:
        if position is not None and self._fits_at(notification, position):
            self._items.insert(position, notification)
        else:
            insort(self._items, notification, key=Notification.sort_key)
        self._by_id[notification.id] = notification
        if not notification.is_read:
            self._unread += 1

    def _discard(self, notification: Notification) -> int:
        position = self._position_of(notification)
        del self._items[position]
        del self._by_id[notification.id]
        if not notification.is_read:
            self._unread = max(0, self._unread - 1)
        return position

    def _swap(self, old: Notification, new: Notification) -> None:
        if old.created_at == new.created_at:
            self._items[self._position_of(old)] = new
            self._by_id[new.id] = new
            self._unread += int(old.is_read) - int(new.is_read)
            self._unread = max(0, self._unread)
            return
        self._discard(old)
        self._add(new)

    def _position_of(self, notification: Notification) -> int:
        position = bisect_left(
            self._items, notification.sort_key(), key=Notification.sort_key
        )
        if position >= len(self._items) or self._items[position].id != notification.id:
            raise LookupError(f"Notification {notification.id} is not in the store")
        return position

    def _fits_at(self, notification: Notification, position: int) -> bool:
        if position < 0 or position > len(self._items):
            return False
        key = notification.sort_key()
        if position > 0 and self._items[position - 1].sort_key() > key:
            return False
        if position < len(self._items) and self._items[position].sort_key() < key:
            return False
        return True

    def _emit(self, mutation_name: str, changes: _Changes) -> None:
        change = StoreChange(
            mutation=mutation_name,
            generation=self._generation,
            unread_count=self._unread,
            added=tuple(changes.added),
            updated=tuple(changes.updated),
            removed=tuple(changes.removed),
        )
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:  # pragma: no cover - listeners must not break the store
                logger.exception("Store listener %r failed", listener)


__all__ = [
    "DiscardTombstone",
    "InsertNotification",
    "MarkAllRead",
    "MarkRead",
    "Mutation",
    "NotificationStore",
    "ReadFilter",
    "ReinsertTombstone",
    "RemoveNotification",
    "ReplaceSnapshot",
    "RestoreRecords",
    "StoreChange",
    "StoreListener",
    "StoreView",
    "Tombstone",
    "UpsertNotification",
]
