"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Swap Google Drive for another mirror later
2. Use in-memory fakes for testing
3. Keep the ledger engine decoupled from where records live

Three roles:
- LocalLedgerStorage: the authoritative on-device copy, overwritten on every change
- RemoteLedgerStorage: the Sync Bridge - a one-way mirror, best effort
- AuditStorageInterface: append-only audit trail
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from sharedbill.models.audit import AuditEvent
from sharedbill.models.ledger import MonthlyRecord


class LocalLedgerStorage(ABC):
    """Durable on-device copy of the full record set."""

    @abstractmethod
    def load(self) -> list[MonthlyRecord]:
        """
        Load the persisted records.

        Returns:
            The stored records, or an empty list if nothing usable is stored
        """
        pass

    @abstractmethod
    def save(self, records: Sequence[MonthlyRecord]) -> None:
        """
        Overwrite the persisted records with the full set.

        Raises:
            LocalStorageError: If the write fails
        """
        pass


@dataclass
class DriveSession:
    """
    Everything one authenticated connection to the mirror needs.

    Created by RemoteLedgerStorage.authenticate() and passed to every
    remote operation; nothing about the connection lives in module state.
    """
    credentials: Any
    identity: str
    http: Any = None
    folder_id: Optional[str] = None
    closed: bool = field(default=False)

    def close(self) -> None:
        """Tear the session down; further remote calls must re-authenticate."""
        if self.http is not None and hasattr(self.http, "close"):
            self.http.close()
        self.http = None
        self.folder_id = None
        self.closed = True


@dataclass(frozen=True)
class RemoteLedgerFile:
    """A ledger file found on the mirror."""
    file_id: str
    records: list[MonthlyRecord]


class RemoteLedgerStorage(ABC):
    """
    The Sync Bridge contract.

    All operations are async and are never retried by the caller.
    A failure surfaces as AuthError or SyncError and never touches
    the local ledger.
    """

    @abstractmethod
    async def authenticate(self) -> DriveSession:
        """
        Obtain a credential and establish the user's identity.

        Raises:
            AuthError: If access is denied or the credential is misconfigured
        """
        pass

    @abstractmethod
    async def find_existing_ledger_file(
        self,
        session: DriveSession,
    ) -> Optional[RemoteLedgerFile]:
        """
        Locate this identity's ledger file inside the dedicated folder.

        The folder is found or created once and cached on the session.

        Returns:
            The file id and its records, or None if there is no file yet

        Raises:
            SyncError: If the lookup fails
        """
        pass

    @abstractmethod
    async def create_ledger_file(
        self,
        session: DriveSession,
        records: Sequence[MonthlyRecord],
    ) -> str:
        """
        Create this identity's ledger file holding `records`.

        Returns:
            The new file id

        Raises:
            SyncError: If the file cannot be created
        """
        pass

    @abstractmethod
    async def update_ledger_file(
        self,
        session: DriveSession,
        file_id: str,
        records: Sequence[MonthlyRecord],
    ) -> None:
        """
        Overwrite the remote file with the full record set.

        Raises:
            SyncError: If the session is unusable or the transport call fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            Events, newest first
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class LocalStorageError(StorageError):
    """The on-device ledger could not be written."""
    pass


class AuthError(StorageError):
    """Remote authentication denied or misconfigured."""

    def __init__(self, message: str, guidance: Optional[str] = None):
        self.guidance = guidance or (
            "Check that GOOGLE_DRIVE_CREDENTIALS_PATH points to a valid "
            "service account key with Drive access."
        )
        super().__init__(message)


class SyncError(StorageError):
    """A read or write against the remote mirror failed."""
    pass
