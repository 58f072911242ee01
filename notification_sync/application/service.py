"""Per-user synchronization session wiring the core components together."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from notification_sync.config import Settings, get_settings
from notification_sync.domain.errors import FetchError
from notification_sync.infrastructure.api import ApiRequestError
from notification_sync.infrastructure.realtime import ChannelTransport
from notification_sync.infrastructure.session import SessionProvider

from .bootstrapper import Bootstrapper
from .mutations import MutationCoordinator
from .ports import PersistenceApi
from .reconciler import AlertSink, EventReconciler
from .store import NotificationStore, StoreView
from .subscriber import ChannelSubscriber, SubscriptionState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncState:
    """Read-only projection exposed to UI consumers."""

    view: StoreView
    subscription: SubscriptionState
    loading: bool
    error: str | None


class NotificationSyncService:
    """Own the store of one signed-in user and the components feeding it."""

    def __init__(
        self,
        session: SessionProvider,
        api: PersistenceApi,
        transport: ChannelTransport,
        *,
        alert_sink: AlertSink | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        settings = settings or get_settings()
        self.session = session
        self.store = NotificationStore()
        self.subscriber = ChannelSubscriber(
            transport,
            self._on_channel_message,
            on_active=self._on_channel_active,
            settings=settings,
            sleep=sleep,
        )
        self.reconciler = EventReconciler(
            self.store,
            epoch_source=lambda: self.subscriber.epoch,
            alert_sink=alert_sink,
            on_overflow=lambda: self.request_resync("event queue overflow"),
            queue_size=settings.event_queue_size,
        )
        self.bootstrapper = Bootstrapper(
            self.store, api, self.reconciler, is_closed=lambda: self._closed
        )
        self.mutations = MutationCoordinator(
            self.store, api, is_closed=lambda: self._closed
        )
        self._api = api
        self._page_size = settings.page_size
        self._closed = False
        self._fetches = 0
        self._snapshot_installed = False
        self._last_error: Exception | None = None
        self._reconcile_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()

    @property
    def user_id(self) -> str:
        return self.session.user_id

    @property
    def closed(self) -> bool:
        return self._closed

    def state(self) -> SyncState:
        error = self._last_error
        if error is None and self.subscriber.last_error is not None:
            error = self.subscriber.last_error
        return SyncState(
            view=self.store.view(),
            subscription=self.subscriber.state,
            loading=self._fetches > 0,
            error=str(error) if error is not None else None,
        )

    async def activate(self) -> StoreView:
        """Open the channel and load the initial snapshot concurrently.

        Raises:
            FetchError: the initial fetch failed. The channel stays open and a
                later :meth:`resync` may succeed.
        """

        if self._closed:
            raise RuntimeError("Cannot activate a closed notification session")
        if self._reconcile_task is None:
            self._reconcile_task = asyncio.create_task(
                self.reconciler.run(), name=f"notification-reconciler:{self.user_id}"
            )
        await self.subscriber.start(self.user_id)
        return await self.resync()

    async def resync(self) -> StoreView:
        """Replace the store with a fresh server snapshot."""

        self._fetches += 1
        try:
            view = await self.bootstrapper.bootstrap(self.user_id)
        except FetchError as exc:
            self._last_error = exc
            raise
        finally:
            self._fetches -= 1
        if view is None:
            # Superseded by a newer fetch, which reports its own outcome.
            return self.store.view()
        self._last_error = None
        self._snapshot_installed = True
        return view

    def request_resync(self, reason: str) -> None:
        """Schedule a background resync; failures are kept on :meth:`state`."""

        if self._closed:
            return
        logger.info("Resync requested for user %s: %s", self.user_id, reason)
        task = asyncio.create_task(self._resync_in_background())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def mark_read(self, notification_id: str) -> bool:
        return await self.mutations.mark_read(notification_id)

    async def mark_all_read(self) -> bool:
        return await self.mutations.mark_all_read()

    async def delete_notification(self, notification_id: str) -> bool:
        return await self.mutations.delete_notification(notification_id)

    async def verify_unread_count(self) -> bool:
        """Compare the local unread counter with the server's total.

        The store only holds the newest page of notifications. When that page is
        full, older unread notifications may live on the server only, so the
        local counter is merely a lower bound and drift is reported only when
        it exceeds the server total.
        """

        try:
            server_count = await self._api.get_unread_count()
        except ApiRequestError as exc:
            logger.warning("Could not verify unread count: %s", exc)
            return False
        local_count = self.store.unread_count
        partial = len(self.store) >= self._page_size
        if server_count < local_count or (not partial and server_count != local_count):
            logger.warning(
                "Unread count drift for user %s: server=%s local=%s",
                self.user_id,
                server_count,
                local_count,
            )
            return False
        return True

    async def close(self) -> None:
        """Tear the session down; in-flight results are discarded afterwards."""

        if self._closed:
            return
        self._closed = True
        await self.subscriber.stop()
        tasks = list(self._background)
        if self._reconcile_task is not None:
            tasks.append(self._reconcile_task)
            self._reconcile_task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Notification session for user %s closed", self.user_id)

    def _on_channel_message(self, message: Any, epoch: int) -> None:
        self.reconciler.submit(message, epoch)

    def _on_channel_active(self, reconnected: bool) -> None:
        if reconnected:
            self.request_resync("channel reconnected")
        elif self._snapshot_installed or self._fetches:
            # The snapshot may predate the subscription; refetch to cover the gap.
            self.request_resync("channel became active after the snapshot was requested")

    async def _resync_in_background(self) -> None:
        try:
            await self.resync()
        except FetchError as exc:
            logger.warning("Background resync for user %s failed: %s", self.user_id, exc)


__all__ = ["NotificationSyncService", "SyncState"]
