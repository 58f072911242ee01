from .notification import (
    ChangeIngest,
    ChangeIngestResult,
    HealthRead,
    MutationResultRead,
    NotificationRead,
    SessionCreate,
    SyncStateRead,
)

__all__ = [
    "ChangeIngest",
    "ChangeIngestResult",
    "HealthRead",
    "MutationResultRead",
    "NotificationRead",
    "SessionCreate",
    "SyncStateRead",
]
