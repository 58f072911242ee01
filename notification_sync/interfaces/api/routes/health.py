from fastapi import APIRouter, Depends, Query

from notification_sync.interfaces.api.dependencies import get_registry
from notification_sync.interfaces.api.schemas import HealthRead
from notification_sync.interfaces.api.sessions import SessionRegistry

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthRead)
async def health(
    wait: float = Query(0.0, ge=0, le=30, description="Seconds to wait for an active channel"),
    registry: SessionRegistry = Depends(get_registry),
) -> HealthRead:
    """Report whether a session exists and its push channel is active."""

    service = registry.current
    if service is None:
        return HealthRead(session=False, channel_active=False, subscription=None)
    active = await service.subscriber.wait_until_active(timeout=wait)
    return HealthRead(
        session=True,
        channel_active=active,
        subscription=service.subscriber.state.value,
    )
