"""Endpoints opening and closing the notification session."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from notification_sync.interfaces.api.dependencies import get_registry
from notification_sync.interfaces.api.schemas import SessionCreate, SyncStateRead
from notification_sync.interfaces.api.sessions import SessionRegistry

router = APIRouter(prefix="/session", tags=["session"])


@router.post("", response_model=SyncStateRead, status_code=status.HTTP_201_CREATED)
async def open_session(
    payload: SessionCreate,
    registry: SessionRegistry = Depends(get_registry),
) -> SyncStateRead:
    """Sign ``payload.user_id`` in, replacing any previous session."""

    service = await registry.open(payload.user_id, payload.access_token)
    return SyncStateRead.from_state(service.state())


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(registry: SessionRegistry = Depends(get_registry)) -> None:
    await registry.close()
