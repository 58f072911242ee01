"""Endpoints and websocket handler for the synchronized notification store."""

from __future__ import annotations

import hmac
import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status

from notification_sync.application import NotificationSyncService
from notification_sync.domain.errors import FetchError, MutationError
from notification_sync.infrastructure.notifications import notification_manager, serialize_view
from notification_sync.interfaces.api.dependencies import get_sync_service
from notification_sync.interfaces.api.schemas import MutationResultRead, SyncStateRead

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _mutation_failed(exc: MutationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"{exc.operation} was rolled back: {exc}",
    )


@router.get("/state", response_model=SyncStateRead)
def read_state(
    read_filter: Literal["all", "unread", "read"] = Query("all", alias="filter"),
    notification_type: str | None = Query(None, alias="type"),
    service: NotificationSyncService = Depends(get_sync_service),
) -> SyncStateRead:
    """Return the current projection, optionally filtered."""

    return SyncStateRead.from_state(
        service.state(), read_filter=read_filter, notification_type=notification_type
    )


@router.put("/read-all", response_model=MutationResultRead)
async def mark_all_read(
    service: NotificationSyncService = Depends(get_sync_service),
) -> MutationResultRead:
    try:
        applied = await service.mark_all_read()
    except MutationError as exc:
        raise _mutation_failed(exc) from exc
    return MutationResultRead(applied=applied, unread_count=service.store.unread_count)


@router.put("/{notification_id}/read", response_model=MutationResultRead)
async def mark_read(
    notification_id: str,
    service: NotificationSyncService = Depends(get_sync_service),
) -> MutationResultRead:
    """Optimistically mark ``notification_id`` read and wait for the server."""

    try:
        applied = await service.mark_read(notification_id)
    except MutationError as exc:
        raise _mutation_failed(exc) from exc
    return MutationResultRead(applied=applied, unread_count=service.store.unread_count)


@router.delete("/{notification_id}", response_model=MutationResultRead)
async def delete_notification(
    notification_id: str,
    service: NotificationSyncService = Depends(get_sync_service),
) -> MutationResultRead:
    try:
        applied = await service.delete_notification(notification_id)
    except MutationError as exc:
        raise _mutation_failed(exc) from exc
    return MutationResultRead(applied=applied, unread_count=service.store.unread_count)


@router.post("/resync", response_model=SyncStateRead)
async def resync(
    service: NotificationSyncService = Depends(get_sync_service),
) -> SyncStateRead:
    """Discard local state and reload it from the persistence API."""

    try:
        await service.resync()
    except FetchError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return SyncStateRead.from_state(service.state())


@router.get("/unread-count/verify")
async def verify_unread_count(
    service: NotificationSyncService = Depends(get_sync_service),
) -> dict[str, int | bool]:
    """Compare the local unread counter with the server total."""

    consistent = await service.verify_unread_count()
    return {"consistent": consistent, "unread_count": service.store.unread_count}


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket) -> None:
    """Websocket endpoint streaming store changes of the active session."""

    token = websocket.query_params.get("token")
    service = websocket.app.state.session_registry.current
    if not token or service is None:
        await websocket.close(code=1008)
        return
    expected = service.session.get_access_token()
    if not hmac.compare_digest(token.encode(), expected.encode()):
        await websocket.close(code=1008)
        return

    user_id = service.user_id
    await notification_manager.connect(user_id, websocket)
    try:
        await websocket.send_json({"type": "init", "data": serialize_view(service.store.view())})
        while True:
            try:
                message = await websocket.receive_json()
            except WebSocketDisconnect:
                raise
            except ValueError:
                continue

            if not isinstance(message, dict):
                continue

            message_type = message.get("type")
            if message_type == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            if message_type == "ack":
                ids = message.get("ids", [])
                if not isinstance(ids, list):
                    continue
                for notification_id in ids:
                    try:
                        await service.mark_read(str(notification_id))
                    except MutationError as exc:
                        await websocket.send_json(
                            {"type": "error", "data": {"id": str(notification_id), "detail": str(exc)}}
                        )
                continue
    except WebSocketDisconnect:
        notification_manager.disconnect(user_id, websocket)
    except Exception:
        notification_manager.disconnect(user_id, websocket)
        raise
