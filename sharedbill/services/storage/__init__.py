"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The local JSON file is authoritative; Google Drive is an optional mirror.
"""

from sharedbill.services.storage.interface import (
    AuditStorageInterface,
    AuthError,
    DriveSession,
    LocalLedgerStorage,
    LocalStorageError,
    RemoteLedgerFile,
    RemoteLedgerStorage,
    StorageError,
    SyncError,
)
from sharedbill.services.storage.local_json import (
    JsonlAuditStorage,
    LocalJsonLedgerStorage,
)
from sharedbill.services.storage.google_drive import GoogleDriveLedgerStorage

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "DriveSession",
    "LocalLedgerStorage",
    "RemoteLedgerFile",
    "RemoteLedgerStorage",
    # Exceptions
    "AuthError",
    "LocalStorageError",
    "StorageError",
    "SyncError",
    # Implementations
    "GoogleDriveLedgerStorage",
    "JsonlAuditStorage",
    "LocalJsonLedgerStorage",
]
