"""Services package."""

from sharedbill.services.storage import (
    AuditStorageInterface,
    AuthError,
    DriveSession,
    GoogleDriveLedgerStorage,
    JsonlAuditStorage,
    LocalJsonLedgerStorage,
    LocalLedgerStorage,
    LocalStorageError,
    RemoteLedgerFile,
    RemoteLedgerStorage,
    StorageError,
    SyncError,
)

__all__ = [
    "AuditStorageInterface",
    "AuthError",
    "DriveSession",
    "GoogleDriveLedgerStorage",
    "JsonlAuditStorage",
    "LocalJsonLedgerStorage",
    "LocalLedgerStorage",
    "LocalStorageError",
    "RemoteLedgerFile",
    "RemoteLedgerStorage",
    "StorageError",
    "SyncError",
]
