"""Integration tests for the local notification API."""

from __future__ import annotations

import time
from pathlib import Path
import sys
from typing import Any

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[4]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from notification_sync.config import Settings
from notification_sync.main import create_app


def _row(notification_id: str, minute: int, *, is_read: bool = False) -> dict[str, Any]:
    return {
        "id": notification_id,
        "userId": "user-1",
        "type": "order_created",
        "title": f"Order {notification_id}",
        "message": "An order changed",
        "data": {},
        "isRead": is_read,
        "createdAt": f"2024-05-01T12:{minute:02d}:00Z",
        "readAt": None,
    }


class FakePersistence:
    """Stateful stand-in for the persistence API."""

    def __init__(self) -> None:
        self.rows = {
            "n1": _row("n1", 10),
            "n2": _row("n2", 5),
            "n3": _row("n3", 1, is_read=True),
        }
        self.failing: set[tuple[str, str]] = set()
        self.tokens: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.tokens.append(request.headers.get("Authorization", ""))
        method = request.method
        path = request.url.path.removeprefix("/api")
        if (method, path) in self.failing:
            return httpx.Response(500, json={"status": "error", "message": "boom"})

        if method == "GET" and path == "/notifications":
            rows = list(self.rows.values())
            unread = sum(1 for row in rows if not row["isRead"])
            return self._ok({"notifications": rows, "unreadCount": unread})
        if method == "GET" and path == "/notifications/unread-count":
            return self._ok({"count": sum(1 for row in self.rows.values() if not row["isRead"])})
        if method == "PUT" and path == "/notifications/read-all":
            for row in self.rows.values():
                row["isRead"] = True
            return self._ok(None)
        parts = path.strip("/").split("/")
        if method == "PUT" and len(parts) == 3 and parts[2] == "read":
            self.rows[parts[1]]["isRead"] = True
            return self._ok(None)
        if method == "DELETE" and len(parts) == 2:
            self.rows.pop(parts[1], None)
            return self._ok(None)
        return httpx.Response(404, json={"status": "error", "message": "not found"})

    @staticmethod
    def _ok(data: Any) -> httpx.Response:
        return httpx.Response(200, json={"status": "success", "data": data})


@pytest.fixture()
def persistence() -> FakePersistence:
    return FakePersistence()


@pytest.fixture()
def client(persistence: FakePersistence):
    settings = Settings(
        api_base_url="http://persistence.test/api",
        reconnect_initial_delay=0,
        reconnect_max_delay=0,
        cors_origins=["http://localhost:4200"],
    )
    app = create_app(settings, api_transport=httpx.MockTransport(persistence))
    with TestClient(app) as test_client:
        yield test_client


def _open_session(client: TestClient) -> dict[str, Any]:
    response = client.post("/session", json={"user_id": "user-1", "access_token": "secret"})
    assert response.status_code == 201
    body = response.json()
    _wait_for(client, lambda state: state["subscription"] == "ACTIVE")
    _wait_for(client, lambda state: not state["loading"])
    return body


def _wait_for(client: TestClient, predicate, attempts: int = 100) -> dict[str, Any]:
    for _ in range(attempts):
        state = client.get("/notifications/state").json()
        if predicate(state):
            return state
        time.sleep(0.01)
    raise AssertionError(f"condition not reached, last state: {state}")


def test_state_requires_a_session(client: TestClient) -> None:
    response = client.get("/notifications/state")

    assert response.status_code == 503


def test_open_session_loads_snapshot(client: TestClient, persistence: FakePersistence) -> None:
    body = _open_session(client)

    assert [n["id"] for n in body["notifications"]] == ["n1", "n2", "n3"]
    assert body["unread_count"] == 2
    assert persistence.tokens[0] == "Bearer secret"

    unread = client.get("/notifications/state", params={"filter": "unread"}).json()
    assert [n["id"] for n in unread["notifications"]] == ["n1", "n2"]
    assert unread["unread_count"] == 2


def test_mark_read_and_mark_all_read(client: TestClient) -> None:
    _open_session(client)

    response = client.put("/notifications/n2/read")
    assert response.status_code == 200
    assert response.json() == {"applied": True, "unread_count": 1}

    response = client.put("/notifications/read-all")
    assert response.json() == {"applied": True, "unread_count": 0}


def test_failed_mark_read_rolls_back(client: TestClient, persistence: FakePersistence) -> None:
    _open_session(client)
    persistence.failing.add(("PUT", "/notifications/n1/read"))

    response = client.put("/notifications/n1/read")

    assert response.status_code == 502
    assert "rolled back" in response.json()["detail"]
    state = client.get("/notifications/state").json()
    assert state["unread_count"] == 2
    assert state["notifications"][0]["is_read"] is False


def test_delete_notification(client: TestClient, persistence: FakePersistence) -> None:
    _open_session(client)

    response = client.delete("/notifications/n1")

    assert response.json() == {"applied": True, "unread_count": 1}
    assert "n1" not in persistence.rows
    assert client.delete("/notifications/unknown").json()["applied"] is False


def test_realtime_change_reaches_the_store(client: TestClient) -> None:
    _open_session(client)
    _wait_for(client, lambda state: state["subscription"] == "ACTIVE")

    change = {
        "event": "INSERT",
        "new": {
            "id": "n9",
            "user_id": "user-1",
            "type": "payment_received",
            "title": "Payment received",
            "message": "You were paid",
            "is_read": False,
            "created_at": "2024-05-01T13:00:00Z",
        },
    }
    response = client.post("/realtime/changes", json=change)
    assert response.status_code == 202
    assert response.json() == {"delivered": 1}

    state = _wait_for(client, lambda state: state["unread_count"] == 3)
    assert state["notifications"][0]["id"] == "n9"


def test_resync_and_unread_verification(client: TestClient, persistence: FakePersistence) -> None:
    _open_session(client)
    persistence.rows.pop("n2")

    state = client.post("/notifications/resync").json()
    assert [n["id"] for n in state["notifications"]] == ["n1", "n3"]

    verified = client.get("/notifications/unread-count/verify").json()
    assert verified == {"consistent": True, "unread_count": 1}


def test_resync_failure_is_reported(client: TestClient, persistence: FakePersistence) -> None:
    _open_session(client)
    persistence.failing.add(("GET", "/notifications"))

    response = client.post("/notifications/resync")

    assert response.status_code == 502
    assert client.get("/notifications/state").json()["error"]


def test_websocket_rejects_wrong_token(client: TestClient) -> None:
    _open_session(client)

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/notifications/ws?token=wrong") as websocket:
            websocket.receive_json()


def test_websocket_streams_state_and_acks(client: TestClient) -> None:
    _open_session(client)

    with client.websocket_connect("/notifications/ws?token=secret") as websocket:
        init = websocket.receive_json()
        assert init["type"] == "init"
        assert init["data"]["unread_count"] == 2

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}

        websocket.send_json({"type": "ack", "ids": ["n1"]})
        change = websocket.receive_json()
        while change["type"] != "change" or change["data"]["mutation"] != "MarkRead":
            change = websocket.receive_json()
        assert change["data"]["unread_count"] == 1
        assert change["data"]["upserted"][0]["id"] == "n1"


def test_close_session(client: TestClient) -> None:
    _open_session(client)

    assert client.delete("/session").status_code == 204
    assert client.get("/notifications/state").status_code == 503


def test_websocket_rejects_non_ascii_token(client: TestClient) -> None:
    _open_session(client)

    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/notifications/ws?token=%C3%A9") as websocket:
            websocket.receive_json()
    assert excinfo.value.code == 1008


def test_health_reports_channel_state(client: TestClient) -> None:
    assert client.get("/health").json() == {
        "session": False,
        "channel_active": False,
        "subscription": None,
    }

    _open_session(client)
    body = client.get("/health", params={"wait": 1}).json()

    assert body == {"session": True, "channel_active": True, "subscription": "ACTIVE"}
