"""
Serialized Push Queue for the Drive Mirror

DESIGN DECISION: Pushes to one remote file are serialized.
- At most one upload is in flight at a time
- A new payload replaces any payload still waiting (it is never sent)
- A running upload is not cancelled; the newest payload follows it

This guarantees the remote file ends up holding the last COMMITTED local
state, not whichever overlapping request happened to finish last.

Failures are logged and turned into notifications. They never roll back
the local ledger and are never retried.
"""

import asyncio
from datetime import datetime
from typing import Optional, Sequence

import structlog
from pydantic import BaseModel, Field

from sharedbill.audit import AuditLogger
from sharedbill.models.ledger import MonthlyRecord
from sharedbill.services.storage.interface import (
    DriveSession,
    RemoteLedgerStorage,
    SyncError,
)

logger = structlog.get_logger(__name__)


class SyncNotification(BaseModel):
    """A soft, user-visible message about the mirror."""

    level: str = Field(
        ...,
        pattern="^(info|warning|error)$",
    )
    message: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class LedgerSyncWorker:
    """
    Pushes full record sets to one Drive file, one upload at a time.
    """

    def __init__(
        self,
        remote: RemoteLedgerStorage,
        session: DriveSession,
        file_id: str,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._remote = remote
        self._session = session
        self._file_id = file_id
        self._audit_logger = audit_logger

        self._pending: Optional[tuple[MonthlyRecord, ...]] = None
        self._task: Optional[asyncio.Task] = None
        self._last_ok = True
        self._notifications: list[SyncNotification] = []

        self.pushes_completed = 0
        self.last_synced_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

    @property
    def file_id(self) -> str:
        return self._file_id

    @property
    def session(self) -> DriveSession:
        return self._session

    @property
    def is_busy(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, records: Sequence[MonthlyRecord]) -> None:
        """
        Queue `records` for upload and return immediately.

        Must be called from inside a running event loop.
        """
        self._pending = tuple(records)

        loop = asyncio.get_running_loop()
        if self._task is None or self._task.done() or self._task.get_loop() is not loop:
            self._task = loop.create_task(self._drain())

    async def _drain(self) -> None:
        while self._pending is not None:
            records, self._pending = self._pending, None
            self._last_ok = await self._push(records)

    async def _push(self, records: tuple[MonthlyRecord, ...]) -> bool:
        try:
            await self._remote.update_ledger_file(self._session, self._file_id, records)
        except SyncError as e:
            await self._record_failure(str(e))
            return False
        except Exception as e:
            logger.exception("drive_sync_unexpected_error", file_id=self._file_id)
            await self._record_failure(f"Unexpected error: {e}")
            return False

        self.pushes_completed += 1
        self.last_synced_at = datetime.utcnow()
        self.last_error = None
        logger.info("drive_sync_completed", file_id=self._file_id, records=len(records))
        if self._audit_logger:
            await self._audit_logger.log_sync_completed(self._file_id, len(records))
        return True

    async def _record_failure(self, message: str) -> None:
        self.last_error = message
        logger.warning("drive_sync_failed", file_id=self._file_id, error=message)
        self._notifications.append(SyncNotification(
            level="warning",
            message=f"Cloud sync failed: {message}. Your local ledger is safe.",
        ))
        if self._audit_logger:
            await self._audit_logger.log_sync_failed(self._file_id, message)

    async def flush(self) -> None:
        """Wait until every queued payload has been pushed (or has failed)."""
        while self.is_busy:
            await self._task

    async def push_now(self, records: Sequence[MonthlyRecord]) -> bool:
        """
        Queue `records` and wait for them to land.

        Returns:
            True if the upload carrying `records` succeeded
        """
        self.schedule(records)
        await self.flush()
        return self._last_ok

    def drain_notifications(self) -> list[SyncNotification]:
        """Return and clear pending notifications."""
        notes, self._notifications = self._notifications, []
        return notes
