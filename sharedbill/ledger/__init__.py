"""Ledger engine package."""

from sharedbill.ledger.builder import (
    build_record,
    carry_forward,
    format_month_label,
    preview_record,
)
from sharedbill.ledger.calculator import (
    compute_expected_shares,
    round2,
    total_weight_units,
)
from sharedbill.ledger.errors import (
    InvalidInputError,
    LedgerError,
    ValidationError,
)
from sharedbill.ledger.history import HistoryStore, Snapshot
from sharedbill.ledger.undo import UndoRedoController

__all__ = [
    "HistoryStore",
    "InvalidInputError",
    "LedgerError",
    "Snapshot",
    "UndoRedoController",
    "ValidationError",
    "build_record",
    "carry_forward",
    "compute_expected_shares",
    "format_month_label",
    "preview_record",
    "round2",
    "total_weight_units",
]
