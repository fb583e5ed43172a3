"""
Main Orchestrator for Shared Bill Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Ledger edits (save / delete / undo / redo -> local file -> Drive push)
2. Cloud sync (connect, manual sync, disconnect)
3. Insights (history -> Gemini summary)

DESIGN DECISION: The orchestrator enforces the boundaries:
- A mutation is committed locally before anything is awaited
- A Drive failure never rolls back local state
- Every step is audited

Each mutating coroutine does all of its synchronous work (validate, apply,
write the local file, queue the push) before its first `await`, so two
user actions can never interleave their changes to the ledger.
"""

from typing import Any, Callable, Mapping, Optional, Sequence, Union
from uuid import UUID

import structlog
from pydantic import BaseModel

from sharedbill.agents import BillInsightsAgent
from sharedbill.audit import AuditLogger, create_correlation_id
from sharedbill.ledger import (
    HistoryStore,
    LedgerError,
    Snapshot,
    UndoRedoController,
    build_record,
    carry_forward,
    preview_record,
)
from sharedbill.models.ledger import (
    DEFAULT_WEIGHTS,
    LedgerPreview,
    MonthlyRecord,
    ParticipantId,
    zero_balances,
)
from sharedbill.services.storage import (
    AuthError,
    GoogleDriveLedgerStorage,
    JsonlAuditStorage,
    LocalJsonLedgerStorage,
    LocalLedgerStorage,
    LocalStorageError,
    RemoteLedgerFile,
    RemoteLedgerStorage,
    SyncError,
)
from sharedbill.services.sync import LedgerSyncWorker, SyncNotification

logger = structlog.get_logger(__name__)


class LedgerFlow:
    """
    Orchestrates edits to the ledger.

    Flow for every mutation:
    1. Validate and build (pure; errors raise before anything changes)
    2. Apply through the undo/redo controller
    3. Overwrite the local JSON file
    4. Queue a push to Drive (if connected) - fire and forget
    5. Audit
    """

    def __init__(
        self,
        local_storage: Optional[LocalLedgerStorage] = None,
        audit_logger: Optional[AuditLogger] = None,
        weights: Mapping[ParticipantId, int] = DEFAULT_WEIGHTS,
    ):
        self._local_storage = local_storage
        self._audit_logger = audit_logger
        self._weights = dict(weights)
        self._sync_worker: Optional[LedgerSyncWorker] = None

        records = local_storage.load() if local_storage else []
        self._controller = UndoRedoController(
            HistoryStore(records),
            on_change=self._on_change,
        )

    # -- wiring -----------------------------------------------------------

    def _on_change(self, records: Snapshot) -> None:
        if self._local_storage:
            self._local_storage.save(records)
        if self._sync_worker:
            self._sync_worker.schedule(records)

    def attach_sync(self, worker: LedgerSyncWorker) -> None:
        """Mirror every future change through `worker`."""
        self._sync_worker = worker

    def detach_sync(self) -> Optional[LedgerSyncWorker]:
        worker, self._sync_worker = self._sync_worker, None
        return worker

    @property
    def sync_worker(self) -> Optional[LedgerSyncWorker]:
        return self._sync_worker

    async def wait_for_sync(self) -> None:
        """Block until queued Drive pushes have finished."""
        if self._sync_worker:
            await self._sync_worker.flush()

    # -- read side --------------------------------------------------------

    @property
    def records(self) -> Snapshot:
        """Current records, storage order."""
        return self._controller.records

    def history(self) -> list[MonthlyRecord]:
        """Current records, oldest month first."""
        return self._controller.store.sorted_by_date()

    def current_balances(self) -> dict[ParticipantId, Any]:
        """Where everyone stands after the latest month."""
        return self._controller.store.latest_balances()

    @property
    def can_undo(self) -> bool:
        return self._controller.can_undo

    @property
    def can_redo(self) -> bool:
        return self._controller.can_redo

    def _prior_for(self, month_label: str) -> dict:
        try:
            return self._controller.store.balances_before(month_label)
        except ValueError:
            # build_record reports the malformed label properly
            return zero_balances()

    def preview(
        self,
        month_label: Optional[str],
        total_bill: Any,
        paid: Optional[Mapping[Any, Any]],
    ) -> LedgerPreview:
        """
        Live numbers for the entry form.

        Without a usable month, the latest balances are carried in.
        """
        store = self._controller.store
        try:
            prior = store.balances_before(month_label) if month_label else store.latest_balances()
        except ValueError:
            prior = store.latest_balances()
        return preview_record(total_bill, paid, prior, self._weights)

    # -- mutations --------------------------------------------------------

    async def _apply(
        self,
        action: str,
        mutate: Callable[[], Any],
        correlation_id: Optional[UUID] = None,
    ) -> Any:
        """
        Run one controller transition.

        If the local file cannot be written the in-memory change stays
        committed (the next successful write catches the file up), no push
        is queued, and the failure is audited and re-raised.
        """
        try:
            return mutate()
        except LocalStorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="local_storage",
                    error_message=str(e),
                    details={"action": action},
                    correlation_id=correlation_id,
                )
            raise

    async def save_month(
        self,
        month_label: Optional[str],
        total_bill: Any,
        paid: Optional[Mapping[Any, Any]],
        correlation_id: Optional[UUID] = None,
    ) -> MonthlyRecord:
        """
        Build and save (or replace) one month.

        Every later month is re-derived in the same change, so one undo
        reverts the whole edit.

        Raises:
            ValidationError: Month not selected or bill not positive
            InvalidInputError: Malformed label or amounts
            LocalStorageError: The local file could not be written
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            record = build_record(
                month_label,
                total_bill,
                paid,
                self._prior_for(month_label or ""),
                self._weights,
            )
        except LedgerError as e:
            if self._audit_logger:
                await self._audit_logger.log_save_rejected(
                    month=month_label,
                    reason=str(e),
                    correlation_id=correlation_id,
                )
            raise

        replaced = record.month in self._controller.store
        working = HistoryStore(self.records)
        working.upsert(record)
        updated = carry_forward(working.records, record.month, self._weights)

        await self._apply(
            "save",
            lambda: self._controller.replace_all(tuple(updated)),
            correlation_id,
        )

        if self._audit_logger:
            await self._audit_logger.log_record_saved(
                month=record.month,
                total_bill=str(record.total_bill),
                replaced=replaced,
                balances={
                    pid.value: str(amount)
                    for pid, amount in record.balance_carry_forward.items()
                },
                correlation_id=correlation_id,
            )
        return record

    async def delete_month(
        self,
        month_label: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete one month and re-derive the months after it.

        Deleting an absent month changes nothing.

        Returns:
            True if a record was removed
        """
        existed = month_label in self._controller.store
        if existed:
            working = HistoryStore(self.records)
            working.remove(month_label)
            updated = carry_forward(working.records, month_label, self._weights)
            mutate = lambda: self._controller.replace_all(tuple(updated))
        else:
            mutate = lambda: self._controller.delete(month_label)
        await self._apply("delete", mutate, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_record_deleted(
                month=month_label,
                existed=existed,
                correlation_id=correlation_id,
            )
        return existed

    async def replace_all(
        self,
        records: Sequence[MonthlyRecord],
        source: str,
        correlation_id: Optional[UUID] = None,
    ) -> Snapshot:
        """Swap in a whole record set as one undoable change."""
        snapshot = HistoryStore(records).snapshot()
        await self._apply(
            "replace_all",
            lambda: self._controller.replace_all(snapshot),
            correlation_id,
        )

        if self._audit_logger:
            await self._audit_logger.log_ledger_replaced(
                source=source,
                record_count=len(snapshot),
                correlation_id=correlation_id,
            )
        return snapshot

    async def undo(self) -> bool:
        """Step back one change. Returns False if there was nothing to undo."""
        moved = await self._apply("undo", self._controller.undo)
        if moved and self._audit_logger:
            await self._audit_logger.log_history_moved("undo", len(self.records))
        return moved

    async def redo(self) -> bool:
        """Re-apply an undone change. Returns False if there was nothing to redo."""
        moved = await self._apply("redo", self._controller.redo)
        if moved and self._audit_logger:
            await self._audit_logger.log_history_moved("redo", len(self.records))
        return moved


class ConnectResult(BaseModel):
    """Outcome of connecting the Drive mirror."""

    file_id: str
    identity: str
    created: bool
    adopted_remote: bool
    remote_record_count: int = 0


AdoptDecision = Union[bool, Callable[[RemoteLedgerFile], bool]]


class CloudSyncFlow:
    """
    Orchestrates the Drive mirror.

    Flow:
    1. Authenticate -> explicit session
    2. Find this identity's ledger file
       - found: optionally adopt its records (one undoable change)
       - missing: create it from the local records
    3. Attach a serialized push worker to the ledger

    Nothing here can change the local ledger except an explicit adoption.
    """

    def __init__(
        self,
        ledger: LedgerFlow,
        remote: Optional[RemoteLedgerStorage] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger = ledger
        self._remote = remote
        self._audit_logger = audit_logger
        self._notifications: list[SyncNotification] = []

    @property
    def is_configured(self) -> bool:
        return self._remote is not None

    @property
    def is_connected(self) -> bool:
        return self._ledger.sync_worker is not None

    async def connect(self, adopt_remote: AdoptDecision = False) -> ConnectResult:
        """
        Connect to Drive and start mirroring.

        Args:
            adopt_remote: Whether records found on Drive replace the local
                ledger; either a flag or a callback deciding per file

        Raises:
            AuthError: Authentication denied or misconfigured
            SyncError: The Drive lookup or file creation failed
        """
        if self._remote is None:
            raise AuthError(
                "Google Drive is not configured",
                guidance="Set GOOGLE_DRIVE_CREDENTIALS_PATH and restart the app.",
            )

        try:
            session = await self._remote.authenticate()
        except AuthError as e:
            if self._audit_logger:
                await self._audit_logger.log_drive_auth_failed(str(e))
            raise

        try:
            existing = await self._remote.find_existing_ledger_file(session)
            adopted = False
            if existing is not None:
                file_id = existing.file_id
                adopted = adopt_remote(existing) if callable(adopt_remote) else bool(adopt_remote)
                if adopted:
                    await self._ledger.replace_all(existing.records, source="google_drive")
            else:
                file_id = await self._remote.create_ledger_file(session, self._ledger.records)
        except SyncError as e:
            session.close()
            if self._audit_logger:
                await self._audit_logger.log_external_service_error("google_drive", str(e))
            raise

        previous = self._ledger.detach_sync()
        if previous is not None:
            await previous.flush()
            previous.session.close()

        self._ledger.attach_sync(LedgerSyncWorker(
            self._remote,
            session,
            file_id,
            audit_logger=self._audit_logger,
        ))

        if self._audit_logger:
            await self._audit_logger.log_drive_connected(
                file_id=file_id,
                created=existing is None,
                adopted_remote=adopted,
            )
        return ConnectResult(
            file_id=file_id,
            identity=session.identity,
            created=existing is None,
            adopted_remote=adopted,
            remote_record_count=len(existing.records) if existing else 0,
        )

    async def sync_now(self) -> bool:
        """
        Push the current ledger immediately and wait for it.

        Returns:
            True if the push succeeded
        """
        worker = self._ledger.sync_worker
        if worker is None:
            self._notifications.append(SyncNotification(
                level="info",
                message="Connect Google Drive before syncing.",
            ))
            return False
        ok = await worker.push_now(self._ledger.records)
        if ok:
            self._notifications.append(SyncNotification(
                level="info",
                message="Ledger synced to Google Drive.",
            ))
        return ok

    async def disconnect(self) -> None:
        """Finish queued pushes and close the Drive session."""
        worker = self._ledger.detach_sync()
        if worker is None:
            return
        await worker.flush()
        self._notifications.extend(worker.drain_notifications())
        worker.session.close()
        logger.info("drive_disconnected", file_id=worker.file_id)

    def notifications(self) -> list[SyncNotification]:
        """Return and clear pending sync notifications."""
        notes, self._notifications = self._notifications, []
        worker = self._ledger.sync_worker
        if worker is not None:
            notes.extend(worker.drain_notifications())
        return notes


class InsightsFlow:
    """Asks the insights agent about the current history."""

    def __init__(
        self,
        ledger: LedgerFlow,
        agent: Optional[BillInsightsAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger = ledger
        self._agent = agent or BillInsightsAgent()
        self._audit_logger = audit_logger

    async def generate(self) -> str:
        history = self._ledger.history()
        text = await self._agent.summarize(history)
        if self._audit_logger:
            await self._audit_logger.log_summary_generated(
                record_count=len(history),
                used_model=bool(history),
            )
        return text


def create_app_components(
    use_drive: bool = True,
) -> tuple[LedgerFlow, CloudSyncFlow, InsightsFlow]:
    """
    Factory function to create all application components.

    Args:
        use_drive: Whether to set up the Google Drive mirror.
                   Set to False to run local-only.

    Returns:
        (ledger_flow, cloud_sync_flow, insights_flow)
    """
    audit_logger = AuditLogger(JsonlAuditStorage())
    ledger_flow = LedgerFlow(
        local_storage=LocalJsonLedgerStorage(),
        audit_logger=audit_logger,
    )

    remote = None
    if use_drive:
        try:
            remote = GoogleDriveLedgerStorage()
        except Exception as e:
            # Drive not configured - continue local-only
            logger.warning("drive_not_configured", error=str(e))

    cloud_sync_flow = CloudSyncFlow(
        ledger=ledger_flow,
        remote=remote,
        audit_logger=audit_logger,
    )
    insights_flow = InsightsFlow(
        ledger=ledger_flow,
        audit_logger=audit_logger,
    )
    return ledger_flow, cloud_sync_flow, insights_flow
