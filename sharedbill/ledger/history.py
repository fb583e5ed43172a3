"""
History Store

Holds the authoritative set of monthly records, one per month label.

DESIGN DECISION: Insertion order of the underlying list means nothing.
Chronological order is recomputed from the month labels on every read,
so replacing or deleting a record can never leave a stale ordering behind.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from sharedbill.models.ledger import (
    MonthlyRecord,
    ParticipantId,
    parse_month_label,
    zero_balances,
)

Snapshot = tuple[MonthlyRecord, ...]


def _sort_key(record: MonthlyRecord) -> date:
    try:
        return record.period
    except ValueError:
        # Only reachable for records built with model_construct
        return date.min


class HistoryStore:
    """
    Month-keyed collection of MonthlyRecords.

    Records are immutable, so snapshots are cheap tuples that share
    record objects with the live store.
    """

    def __init__(self, records: Optional[Iterable[MonthlyRecord]] = None):
        self._records: list[MonthlyRecord] = []
        for record in records or ():
            self.upsert(record)

    @property
    def records(self) -> Snapshot:
        """Current records in storage order."""
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, month_label: object) -> bool:
        return any(r.month == month_label for r in self._records)

    def _index_of(self, month_label: str) -> Optional[int]:
        for idx, record in enumerate(self._records):
            if record.month == month_label:
                return idx
        return None

    def get(self, month_label: str) -> Optional[MonthlyRecord]:
        """Record for a month label, or None."""
        idx = self._index_of(month_label)
        return self._records[idx] if idx is not None else None

    def upsert(self, record: MonthlyRecord) -> Snapshot:
        """
        Insert a record, replacing any record with the same month label.

        Returns:
            The full record set after the change
        """
        idx = self._index_of(record.month)
        if idx is None:
            self._records.append(record)
        else:
            self._records[idx] = record
        return self.records

    def remove(self, month_label: str) -> Snapshot:
        """Delete a month. Removing an absent month is a no-op."""
        self._records = [r for r in self._records if r.month != month_label]
        return self.records

    def sorted_by_date(self) -> list[MonthlyRecord]:
        """All records, oldest month first."""
        return sorted(self._records, key=_sort_key)

    def latest_balances(self) -> dict[ParticipantId, Decimal]:
        """Carry-forward of the most recent month, or zeros if empty."""
        ordered = self.sorted_by_date()
        if not ordered:
            return zero_balances()
        return dict(ordered[-1].balance_carry_forward)

    def balances_before(self, month_label: str) -> dict[ParticipantId, Decimal]:
        """
        Carry-forward of the latest month strictly before `month_label`.

        This is what a save of `month_label` starts from; the month's own
        existing record (if any) is never its own prior.

        Raises:
            ValueError: If the label cannot be parsed
        """
        target = parse_month_label(month_label)
        prior = [r for r in self.sorted_by_date() if _sort_key(r) < target]
        if not prior:
            return zero_balances()
        return dict(prior[-1].balance_carry_forward)

    def snapshot(self) -> Snapshot:
        """Immutable copy of the current record set."""
        return self.records

    def restore(self, snapshot: Iterable[MonthlyRecord]) -> None:
        """Replace the whole record set with a snapshot."""
        self._records = list(snapshot)
