"""Push channel transport boundary."""

from __future__ import annotations

from typing import Any, Mapping, Protocol

from notification_sync.domain.errors import TransportError


class ChannelClosedError(TransportError):
    """The remote end closed the channel."""


class ChannelConnection(Protocol):
    """One open subscription on the push channel."""

    async def confirmed(self) -> None:
        """Return once the transport acknowledged the subscription."""

    async def receive(self) -> Mapping[str, Any]:
        """Return the next row-change message; raise ``TransportError`` on disconnect."""

    async def close(self) -> None: ...


class ChannelTransport(Protocol):
    """Factory opening user-scoped subscriptions for a topic."""

    async def connect(self, topic: str, user_id: str) -> ChannelConnection: ...


__all__ = ["ChannelClosedError", "ChannelConnection", "ChannelTransport"]
