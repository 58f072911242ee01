"""Tests for the in-process push channel."""

from __future__ import annotations

import pytest

from notification_sync.domain.errors import TransportError
from notification_sync.infrastructure.realtime import ChannelClosedError, ChannelHub

pytestmark = pytest.mark.anyio


async def test_publish_change_routes_by_owner() -> None:
    hub = ChannelHub()
    mine = await hub.connect("notifications:user-1", "user-1")
    other = await hub.connect("notifications:user-2", "user-2")

    assert hub.publish_change({"event": "INSERT", "new": {"id": "n1", "user_id": "user-1"}}) == 1
    assert hub.publish_change({"event": "DELETE", "old": {"id": "n2", "userId": "user-2"}}) == 1
    assert hub.publish_change({"event": "DELETE", "old": {"id": "n3"}}) == 0

    assert (await mine.receive())["new"]["id"] == "n1"
    assert (await other.receive())["old"]["id"] == "n2"


async def test_close_unregisters_connection() -> None:
    hub = ChannelHub()
    connection = await hub.connect("notifications:user-1", "user-1")
    await connection.confirmed()

    await connection.close()

    assert hub.subscriber_count("user-1") == 0
    with pytest.raises(ChannelClosedError):
        await connection.confirmed()


async def test_drop_user_terminates_receivers() -> None:
    hub = ChannelHub()
    connection = await hub.connect("notifications:user-1", "user-1")

    hub.drop_user("user-1")

    with pytest.raises(ChannelClosedError):
        await connection.receive()


async def test_refuses_connections_when_not_accepting() -> None:
    hub = ChannelHub()
    hub.accepting = False

    with pytest.raises(TransportError):
        await hub.connect("notifications:user-1", "user-1")
