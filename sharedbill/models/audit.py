"""
Audit Models for Shared Bill Ledger

Every ledger mutation and every interaction with the Drive mirror is logged.
This provides:
1. Complete traceability of who-owes-what changes
2. Debugging information when a sync goes wrong
3. A way to reconstruct history beyond the in-session undo stack

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every ledger operation has its own event type.
    """
    # Ledger mutations
    RECORD_SAVED = "record_saved"
    RECORD_REPLACED = "record_replaced"
    RECORD_DELETED = "record_deleted"
    LEDGER_REPLACED = "ledger_replaced"
    SAVE_REJECTED = "save_rejected"

    # History navigation
    UNDO_APPLIED = "undo_applied"
    REDO_APPLIED = "redo_applied"

    # Drive mirror
    DRIVE_CONNECTED = "drive_connected"
    DRIVE_AUTH_FAILED = "drive_auth_failed"
    SYNC_COMPLETED = "sync_completed"
    SYNC_FAILED = "sync_failed"

    # Insights
    SUMMARY_GENERATED = "summary_generated"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - which month or file is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'month', 'ledger', 'drive_file')"
    )
    entity_key: Optional[str] = Field(
        default=None,
        description="Key of the entity (month label, Drive file id)"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a save and its sync)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_key": self.entity_key,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_json_line(self) -> str:
        """Serialize as one line of the JSON-lines audit file."""
        return json.dumps(self.to_log_dict(), ensure_ascii=False, default=str)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_saved("March 2024", "1200", replaced=False)
        event = AuditEventBuilder.sync_failed(file_id, "HTTP 500")
    """

    @staticmethod
    def record_saved(
        month: str,
        total_bill: str,
        replaced: bool,
        balances: dict[str, str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.RECORD_REPLACED if replaced
            else AuditEventType.RECORD_SAVED
        )
        verb = "replaced" if replaced else "saved"
        return AuditEvent(
            event_type=event_type,
            entity_type="month",
            entity_key=month,
            correlation_id=correlation_id,
            description=f"Month {verb}: {month} - bill {total_bill}",
            details={
                "total_bill": total_bill,
                "balance_carry_forward": balances,
            },
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(
        month: str,
        existed: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            entity_type="month",
            entity_key=month,
            correlation_id=correlation_id,
            description=(
                f"Month deleted: {month}" if existed
                else f"Delete requested for absent month: {month}"
            ),
            details={"existed": existed},
            is_user_action=True,
        )

    @staticmethod
    def ledger_replaced(
        source: str,
        record_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_REPLACED,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Ledger replaced from {source} ({record_count} months)",
            details={"source": source, "record_count": record_count},
            is_user_action=True,
        )

    @staticmethod
    def save_rejected(
        month: Optional[str],
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="month",
            entity_key=month,
            correlation_id=correlation_id,
            description="Save rejected before any change was made",
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def history_moved(
        direction: str,
        record_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.UNDO_APPLIED if direction == "undo"
            else AuditEventType.REDO_APPLIED
        )
        return AuditEvent(
            event_type=event_type,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"{direction.capitalize()} applied; ledger now has {record_count} months",
            details={"record_count": record_count},
            is_user_action=True,
        )

    @staticmethod
    def drive_connected(
        file_id: str,
        created: bool,
        adopted_remote: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRIVE_CONNECTED,
            entity_type="drive_file",
            entity_key=file_id,
            description=(
                "Created ledger file on Drive" if created
                else "Found existing ledger file on Drive"
            ),
            details={"created": created, "adopted_remote": adopted_remote},
            is_user_action=True,
        )

    @staticmethod
    def drive_auth_failed(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRIVE_AUTH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="drive_file",
            description="Drive authentication failed",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def sync_completed(file_id: str, record_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_COMPLETED,
            entity_type="drive_file",
            entity_key=file_id,
            description=f"Pushed {record_count} months to Drive",
            details={"record_count": record_count},
        )

    @staticmethod
    def sync_failed(file_id: Optional[str], error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="drive_file",
            entity_key=file_id,
            description="Drive sync failed; local ledger unchanged",
            error_message=error_message,
        )

    @staticmethod
    def summary_generated(record_count: int, used_model: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARY_GENERATED,
            entity_type="ledger",
            description=f"Insights requested over {record_count} months",
            details={"used_model": used_model},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
