"""Ingest row changes from the database change feed."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from notification_sync.infrastructure.realtime import ChannelHub
from notification_sync.interfaces.api.dependencies import get_channel_hub
from notification_sync.interfaces.api.schemas import ChangeIngest, ChangeIngestResult

router = APIRouter(prefix="/realtime", tags=["realtime"])


@router.post(
    "/changes",
    response_model=ChangeIngestResult,
    status_code=status.HTTP_202_ACCEPTED,
)
def ingest_change(
    payload: ChangeIngest,
    hub: ChannelHub = Depends(get_channel_hub),
) -> ChangeIngestResult:
    """Fan a row change out to the subscriptions of the row owner."""

    delivered = hub.publish_change(payload.model_dump())
    return ChangeIngestResult(delivered=delivered)
