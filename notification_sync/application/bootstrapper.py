"""Initial fetch and explicit resync of the notification store."""

from __future__ import annotations

import logging
from typing import Callable

from notification_sync.domain.errors import FetchError, StaleEventError
from notification_sync.infrastructure.api import ApiRequestError

from .ports import PersistenceApi
from .reconciler import EventReconciler
from .store import NotificationStore, ReplaceSnapshot, StoreView

logger = logging.getLogger(__name__)


class Bootstrapper:
    """Replace the store contents with a fresh server snapshot.

    Change events arriving while the fetch is outstanding are parked by the
    reconciler and replayed right after the snapshot is installed. When
    several fetches overlap only the most recently started one may install
    its result.
    """

    def __init__(
        self,
        store: NotificationStore,
        api: PersistenceApi,
        reconciler: EventReconciler,
        *,
        is_closed: Callable[[], bool] = lambda: False,
    ) -> None:
        self._store = store
        self._api = api
        self._reconciler = reconciler
        self._is_closed = is_closed
        self._sequence = 0

    async def bootstrap(self, user_id: str) -> StoreView | None:
        """Fetch and install the snapshot for ``user_id``.

        Returns the view right after installation and replay, or ``None`` when
        the result was discarded because a newer fetch started or the session
        closed.

        Raises:
            FetchError: the fetch failed; the store is left unchanged.
        """

        self._sequence += 1
        ticket = self._sequence
        self._reconciler.hold()
        try:
            try:
                page = await self._api.list_notifications()
            except ApiRequestError as exc:
                try:
                    self._ensure_current(ticket)
                except StaleEventError as stale:
                    logger.debug("%s; ignoring its failure: %s", stale, exc)
                    return None
                logger.warning("Notification bootstrap for user %s failed: %s", user_id, exc)
                raise FetchError(
                    f"Could not load notifications: {exc}", status_code=exc.status_code
                ) from exc

            try:
                self._ensure_current(ticket)
            except StaleEventError as exc:
                logger.debug("%s", exc)
                return None

            notifications = tuple(n for n in page.notifications if n.user_id == user_id)
            if len(notifications) != len(page.notifications):
                logger.warning(
                    "Ignoring %s notifications that do not belong to user %s",
                    len(page.notifications) - len(notifications),
                    user_id,
                )
            generation = self._store.apply(ReplaceSnapshot(notifications))
            view = self._store.view()
            if page.unread_count is not None and page.unread_count != view.unread_count:
                logger.info(
                    "Server reported %s unread notifications, fetched page holds %s",
                    page.unread_count,
                    view.unread_count,
                )
            logger.info(
                "Installed snapshot generation %s with %s notifications for user %s",
                generation,
                len(view.notifications),
                user_id,
            )
        finally:
            self._reconciler.release()
        return self._store.view()

    def _ensure_current(self, ticket: int) -> None:
        if self._is_closed():
            raise StaleEventError("Discarding snapshot fetched for a closed session")
        if ticket != self._sequence:
            raise StaleEventError(
                f"Discarding snapshot {ticket}; a newer fetch ({self._sequence}) is in flight"
            )


__all__ = ["Bootstrapper"]
