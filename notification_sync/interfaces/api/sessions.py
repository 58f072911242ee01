"""Lifecycle of the notification session served by the local API."""

from __future__ import annotations

import logging
from typing import Callable

import httpx

from notification_sync.application import NotificationSyncService
from notification_sync.config import Settings, get_settings
from notification_sync.domain.errors import FetchError
from notification_sync.infrastructure.api import NotificationApiClient
from notification_sync.infrastructure.notifications import build_publisher
from notification_sync.infrastructure.realtime import ChannelTransport
from notification_sync.infrastructure.session import StaticSession

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Hold the single active :class:`NotificationSyncService` of this process."""

    def __init__(
        self,
        transport: ChannelTransport,
        *,
        settings: Settings | None = None,
        api_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._transport = transport
        self._settings = settings or get_settings()
        self._api_transport = api_transport
        self._service: NotificationSyncService | None = None
        self._api: NotificationApiClient | None = None
        self._remove_listener: Callable[[], None] | None = None

    @property
    def current(self) -> NotificationSyncService | None:
        if self._service is None or self._service.closed:
            return None
        return self._service

    async def open(self, user_id: str, access_token: str) -> NotificationSyncService:
        """Replace any active session with one for ``user_id`` and activate it.

        A failed initial fetch is logged and kept on the session state; the
        session itself stays open so a later resync can recover.
        """

        await self.close()
        session = StaticSession(user_id=user_id, access_token=access_token)
        api = NotificationApiClient(
            session, settings=self._settings, transport=self._api_transport
        )
        publisher = build_publisher(user_id)
        service = NotificationSyncService(
            session,
            api,
            self._transport,
            alert_sink=publisher,
            settings=self._settings,
        )
        self._remove_listener = service.store.add_listener(
            lambda change: publisher.publish_change(change, service.store.view())
        )
        self._service = service
        self._api = api
        try:
            await service.activate()
        except FetchError as exc:
            logger.warning("Initial notification fetch for user %s failed: %s", user_id, exc)
        return service

    async def close(self) -> None:
        service, self._service = self._service, None
        api, self._api = self._api, None
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        if service is not None:
            await service.close()
        if api is not None:
            await api.aclose()


__all__ = ["SessionRegistry"]
