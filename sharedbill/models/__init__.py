"""
Data Models Package

This package contains all Pydantic models used in the Shared Bill Ledger.
All data flowing through the system must conform to these schemas.
"""

from sharedbill.models.ledger import (
    DEFAULT_WEIGHTS,
    MONTH_NAMES,
    PARTICIPANTS,
    LedgerPreview,
    MonthlyRecord,
    Participant,
    ParticipantId,
    ValidationIssue,
    describe_balance,
    format_amount,
    parse_month_label,
    to_decimal,
    zero_balances,
)
from sharedbill.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "DEFAULT_WEIGHTS",
    "MONTH_NAMES",
    "PARTICIPANTS",
    "LedgerPreview",
    "MonthlyRecord",
    "Participant",
    "ParticipantId",
    "ValidationIssue",
    "describe_balance",
    "format_amount",
    "parse_month_label",
    "to_decimal",
    "zero_balances",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
