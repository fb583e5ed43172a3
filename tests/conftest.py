"""Shared fixtures: an in-memory Drive and temp-dir storage."""

import asyncio
from typing import Optional, Sequence

import pytest

from sharedbill.audit import AuditLogger
from sharedbill.models.ledger import MonthlyRecord
from sharedbill.orchestrator import CloudSyncFlow, LedgerFlow
from sharedbill.services.storage import (
    AuthError,
    DriveSession,
    JsonlAuditStorage,
    LocalJsonLedgerStorage,
    RemoteLedgerFile,
    RemoteLedgerStorage,
    SyncError,
)


class FakeDrive(RemoteLedgerStorage):
    """
    In-memory stand-in for the Drive mirror.

    `gate`, when set, holds every upload until it is released, which lets
    tests pile up changes while a push is in flight.
    """

    def __init__(
        self,
        existing: Optional[RemoteLedgerFile] = None,
        deny_auth: bool = False,
        failing_updates: int = 0,
    ):
        self.existing = existing
        self.deny_auth = deny_auth
        self.failing_updates = failing_updates
        self.gate: Optional[asyncio.Event] = None

        self.sessions: list[DriveSession] = []
        self.created: list[list[str]] = []
        self.pushes: list[list[str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def authenticate(self) -> DriveSession:
        if self.deny_auth:
            raise AuthError("Access denied by Google: invalid_grant")
        session = DriveSession(credentials=None, identity="ni-ledger")
        self.sessions.append(session)
        return session

    async def find_existing_ledger_file(self, session: DriveSession) -> Optional[RemoteLedgerFile]:
        return self.existing

    async def create_ledger_file(self, session: DriveSession, records: Sequence[MonthlyRecord]) -> str:
        self.created.append([r.month for r in records])
        return "file-new"

    async def update_ledger_file(
        self,
        session: DriveSession,
        file_id: str,
        records: Sequence[MonthlyRecord],
    ) -> None:
        if session.closed:
            raise SyncError("Drive session is closed. Please reconnect.")
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if self.gate is not None:
                await self.gate.wait()
            if self.failing_updates:
                self.failing_updates -= 1
                raise SyncError("Drive PATCH request failed: 500 Internal Server Error")
            self.pushes.append([r.month for r in records])
        finally:
            self.in_flight -= 1


@pytest.fixture
def local_storage(tmp_path):
    return LocalJsonLedgerStorage(path=tmp_path / "ledger.json", storage_key="sibiwifi_records")


@pytest.fixture
def audit_storage(tmp_path):
    return JsonlAuditStorage(path=tmp_path / "audit.jsonl")


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def ledger_flow(local_storage, audit_logger):
    return LedgerFlow(local_storage=local_storage, audit_logger=audit_logger)


@pytest.fixture
def drive():
    return FakeDrive()


@pytest.fixture
def sync_flow(ledger_flow, drive, audit_logger):
    return CloudSyncFlow(ledger=ledger_flow, remote=drive, audit_logger=audit_logger)
