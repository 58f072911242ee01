"""FastAPI dependency utilities."""

from fastapi import HTTPException, Request, status

from notification_sync.application import NotificationSyncService
from notification_sync.infrastructure.realtime import ChannelHub

from .sessions import SessionRegistry


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.session_registry


def get_channel_hub(request: Request) -> ChannelHub:
    return request.app.state.channel_hub


def get_sync_service(request: Request) -> NotificationSyncService:
    """Return the active notification session or fail with 503."""

    service = get_registry(request).current
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No active notification session",
        )
    return service
