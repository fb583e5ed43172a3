"""Drive sync package."""

from sharedbill.services.sync.worker import LedgerSyncWorker, SyncNotification

__all__ = ["LedgerSyncWorker", "SyncNotification"]
