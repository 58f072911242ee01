"""Tests for the persistence API client using a mocked HTTP transport."""

from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest

from notification_sync.infrastructure.api import ApiRequestError, NotificationApiClient
from notification_sync.infrastructure.session import StaticSession

pytestmark = pytest.mark.anyio

ROW = {
    "id": 42,
    "userId": "user-1",
    "type": "message_received",
    "title": "New message",
    "message": "You have a new message",
    "data": None,
    "isRead": False,
    "createdAt": "2024-05-01T12:00:00Z",
    "readAt": None,
}


def _client(settings, handler) -> NotificationApiClient:
    return NotificationApiClient(
        StaticSession(user_id="user-1", access_token="secret"),
        settings=settings,
        transport=httpx.MockTransport(handler),
    )


async def test_list_notifications_parses_page(settings) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"status": "success", "data": {"notifications": [ROW], "unreadCount": 7}},
        )

    client = _client(settings, handler)
    page = await client.list_notifications()
    await client.aclose()

    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/api/notifications"
    assert request.url.params["page"] == "1"
    assert request.url.params["limit"] == "20"
    assert request.headers["Authorization"] == "Bearer secret"
    assert page.unread_count == 7
    notification = page.notifications[0]
    assert notification.id == "42"
    assert notification.data == {}
    assert notification.created_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("call", "method", "path"),
    [
        (lambda c: c.mark_read("a/b"), "PUT", "/api/notifications/a%2Fb/read"),
        (lambda c: c.mark_all_read(), "PUT", "/api/notifications/read-all"),
        (lambda c: c.delete("n1"), "DELETE", "/api/notifications/n1"),
    ],
)
async def test_mutation_endpoints(settings, call, method, path) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"status": "success", "data": None})

    client = _client(settings, handler)
    await call(client)
    await client.aclose()

    assert seen[0].method == method
    assert seen[0].url.raw_path.decode() == path


async def test_get_unread_count(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "success", "data": {"count": 3}})

    client = _client(settings, handler)
    assert await client.get_unread_count() == 3
    await client.aclose()


async def test_error_status_raises(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"status": "error", "message": "broken"})

    client = _client(settings, handler)
    with pytest.raises(ApiRequestError) as excinfo:
        await client.mark_read("n1")
    await client.aclose()

    assert excinfo.value.status_code == 500


async def test_non_success_envelope_raises_with_message(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "error", "message": "Not allowed"})

    client = _client(settings, handler)
    with pytest.raises(ApiRequestError, match="Not allowed"):
        await client.delete("n1")
    await client.aclose()


async def test_non_json_body_raises(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    client = _client(settings, handler)
    with pytest.raises(ApiRequestError, match="non-JSON"):
        await client.get_unread_count()
    await client.aclose()


async def test_malformed_page_raises(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "success", "data": {"notifications": [{}]}})

    client = _client(settings, handler)
    with pytest.raises(ApiRequestError, match="Malformed"):
        await client.list_notifications()
    await client.aclose()


async def test_transport_failure_raises(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(settings, handler)
    with pytest.raises(ApiRequestError, match="failed"):
        await client.list_notifications()
    await client.aclose()
