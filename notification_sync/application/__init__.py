"""Notification state-synchronization core."""

from .bootstrapper import Bootstrapper
from .mutations import MutationCoordinator
from .reconciler import AlertSink, EventReconciler
from .service import NotificationSyncService, SyncState
from .store import NotificationStore, StoreChange, StoreView, Tombstone
from .subscriber import ChannelSubscriber, SubscriptionState

__all__ = [
    "AlertSink",
    "Bootstrapper",
    "ChannelSubscriber",
    "EventReconciler",
    "MutationCoordinator",
    "NotificationStore",
    "NotificationSyncService",
    "StoreChange",
    "StoreView",
    "SubscriptionState",
    "SyncState",
    "Tombstone",
]
