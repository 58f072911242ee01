"""In-process push channel that fans row changes out to subscriptions."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, DefaultDict, Mapping, Set

from notification_sync.domain.errors import TransportError

from .transport import ChannelClosedError

logger = logging.getLogger(__name__)

_CLOSED = object()


class HubConnection:
    """Subscription handed out by :class:`ChannelHub`."""

    def __init__(self, hub: "ChannelHub", topic: str, user_id: str) -> None:
        self._hub = hub
        self.topic = topic
        self.user_id = user_id
        self._messages: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    async def confirmed(self) -> None:
        if self._closed:
            raise ChannelClosedError(f"Subscription to {self.topic} was closed")

    async def receive(self) -> Mapping[str, Any]:
        message = await self._messages.get()
        if message is _CLOSED:
            raise ChannelClosedError(f"Subscription to {self.topic} was closed")
        return message

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._hub.disconnect(self)

    def deliver(self, message: Mapping[str, Any]) -> None:
        if not self._closed:
            self._messages.put_nowait(dict(message))

    def terminate(self) -> None:
        """Drop the connection from the server side."""

        if self._closed:
            return
        self._closed = True
        self._messages.put_nowait(_CLOSED)


class ChannelHub:
    """Manage active subscriptions grouped by user and deliver row changes."""

    def __init__(self) -> None:
        self._connections: DefaultDict[str, Set[HubConnection]] = defaultdict(set)
        self.accepting = True

    async def connect(self, topic: str, user_id: str) -> HubConnection:
        """Register a subscription for ``user_id`` on ``topic``."""

        if not self.accepting:
            raise TransportError("Channel hub is not accepting subscriptions")
        connection = HubConnection(self, topic, user_id)
        self._connections[user_id].add(connection)
        return connection

    def disconnect(self, connection: HubConnection) -> None:
        """Remove ``connection`` from the pool of its user."""

        connections = self._connections.get(connection.user_id)
        if connections is None:
            return
        connections.discard(connection)
        if not connections:
            self._connections.pop(connection.user_id, None)

    def subscriber_count(self, user_id: str) -> int:
        return len(self._connections.get(user_id, ()))

    def send_to_user(self, user_id: str, message: Mapping[str, Any]) -> int:
        """Deliver ``message`` to every subscription of ``user_id``."""

        connections = list(self._connections.get(user_id, set()))
        for connection in connections:
            connection.deliver(message)
        return len(connections)

    def publish_change(self, message: Mapping[str, Any]) -> int:
        """Route a row change to the user owning the row.

        The owner is read from ``new.user_id`` and falls back to
        ``old.user_id``; messages without an owner are dropped.
        """

        user_id = _owner_of(message)
        if user_id is None:
            logger.warning("Dropping row change without an owning user: %s", message)
            return 0
        return self.send_to_user(user_id, message)

    def drop_user(self, user_id: str) -> None:
        """Terminate every subscription of ``user_id`` as if the link went down."""

        for connection in list(self._connections.pop(user_id, set())):
            connection.terminate()


def _owner_of(message: Mapping[str, Any]) -> str | None:
    for key in ("new", "old"):
        row = message.get(key)
        if isinstance(row, Mapping):
            owner = row.get("user_id", row.get("userId"))
            if owner not in (None, ""):
                return str(owner)
    return None


__all__ = ["ChannelHub", "HubConnection"]
