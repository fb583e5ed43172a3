"""
Audit Logger

DESIGN DECISION: Every ledger mutation and every mirror interaction is logged.
This provides:
1. Complete traceability of balance changes
2. Debugging capability when a sync fails
3. History beyond the in-session undo stack

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from sharedbill.models.audit import AuditEvent, AuditEventBuilder
from sharedbill.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit storage backend (for persistence), when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_record_saved(
        self,
        month: str,
        total_bill: str,
        replaced: bool,
        balances: dict[str, str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a month save or replacement."""
        await self.log(AuditEventBuilder.record_saved(
            month=month,
            total_bill=total_bill,
            replaced=replaced,
            balances=balances,
            correlation_id=correlation_id,
        ))

    async def log_record_deleted(
        self,
        month: str,
        existed: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a month deletion."""
        await self.log(AuditEventBuilder.record_deleted(
            month=month,
            existed=existed,
            correlation_id=correlation_id,
        ))

    async def log_ledger_replaced(
        self,
        source: str,
        record_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a whole-ledger replacement."""
        await self.log(AuditEventBuilder.ledger_replaced(
            source=source,
            record_count=record_count,
            correlation_id=correlation_id,
        ))

    async def log_save_rejected(
        self,
        month: Optional[str],
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a save that failed its preconditions."""
        await self.log(AuditEventBuilder.save_rejected(
            month=month,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_history_moved(
        self,
        direction: str,
        record_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an undo or redo."""
        await self.log(AuditEventBuilder.history_moved(
            direction=direction,
            record_count=record_count,
            correlation_id=correlation_id,
        ))

    async def log_drive_connected(
        self,
        file_id: str,
        created: bool,
        adopted_remote: bool,
    ) -> None:
        """Log a successful Drive connection."""
        await self.log(AuditEventBuilder.drive_connected(
            file_id=file_id,
            created=created,
            adopted_remote=adopted_remote,
        ))

    async def log_drive_auth_failed(self, error_message: str) -> None:
        """Log a denied or misconfigured Drive authentication."""
        await self.log(AuditEventBuilder.drive_auth_failed(error_message))

    async def log_sync_completed(self, file_id: str, record_count: int) -> None:
        """Log a completed push."""
        await self.log(AuditEventBuilder.sync_completed(file_id, record_count))

    async def log_sync_failed(self, file_id: Optional[str], error_message: str) -> None:
        """Log a failed push."""
        await self.log(AuditEventBuilder.sync_failed(file_id, error_message))

    async def log_summary_generated(self, record_count: int, used_model: bool) -> None:
        """Log an insights request."""
        await self.log(AuditEventBuilder.summary_generated(record_count, used_model))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., saving a month).
    Pass it through all subsequent operations.
    """
    return uuid4()
