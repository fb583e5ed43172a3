"""
Undo/Redo Controller

Wraps every mutation of the HistoryStore in a pair of snapshot stacks.

STATE MACHINE:
- mutate: current -> end of `past`, `future` cleared, mutation applied
- undo:   current -> front of `future`, last of `past` becomes current
- redo:   current -> end of `past`, first of `future` becomes current

Undo and redo on an empty stack are no-ops. Stacks are unbounded and live
only as long as the process; they are never persisted.
"""

from collections import deque
from typing import Callable, Optional

import structlog

from sharedbill.ledger.history import HistoryStore, Snapshot
from sharedbill.models.ledger import MonthlyRecord

ChangeListener = Callable[[Snapshot], None]

logger = structlog.get_logger(__name__)


class UndoRedoController:
    """
    Linear history of full-store snapshots.

    `on_change` is called with the new record set after every mutation,
    undo and redo that actually changed the current store.
    """

    def __init__(
        self,
        store: Optional[HistoryStore] = None,
        on_change: Optional[ChangeListener] = None,
    ):
        self._store = store if store is not None else HistoryStore()
        self._past: list[Snapshot] = []
        self._future: deque[Snapshot] = deque()
        self._on_change = on_change

    @property
    def store(self) -> HistoryStore:
        return self._store

    @property
    def records(self) -> Snapshot:
        return self._store.snapshot()

    @property
    def past(self) -> tuple[Snapshot, ...]:
        """Prior snapshots, oldest first."""
        return tuple(self._past)

    @property
    def future(self) -> tuple[Snapshot, ...]:
        """Undone snapshots, most recently undone first."""
        return tuple(self._future)

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    def _notify(self) -> Snapshot:
        records = self._store.snapshot()
        if self._on_change is not None:
            self._on_change(records)
        return records

    def _mutate(self, apply: Callable[[HistoryStore], object]) -> Snapshot:
        self._past.append(self._store.snapshot())
        self._future.clear()
        apply(self._store)
        return self._notify()

    def save(self, record: MonthlyRecord) -> Snapshot:
        """Insert or replace a month."""
        return self._mutate(lambda store: store.upsert(record))

    def delete(self, month_label: str) -> Snapshot:
        """
        Remove a month.

        Still recorded as a mutation when the month is absent, so the redo
        branch is dropped exactly as for any other edit.
        """
        return self._mutate(lambda store: store.remove(month_label))

    def replace_all(self, records: Snapshot) -> Snapshot:
        """Swap in a whole record set (e.g. one adopted from Drive)."""
        return self._mutate(lambda store: store.restore(records))

    def undo(self) -> bool:
        """Step back one snapshot. Returns False if there was nothing to undo."""
        if not self._past:
            return False
        self._future.appendleft(self._store.snapshot())
        self._store.restore(self._past.pop())
        logger.debug("ledger_undo", past=len(self._past), future=len(self._future))
        self._notify()
        return True

    def redo(self) -> bool:
        """Step forward one snapshot. Returns False if there was nothing to redo."""
        if not self._future:
            return False
        self._past.append(self._store.snapshot())
        self._store.restore(self._future.popleft())
        logger.debug("ledger_redo", past=len(self._past), future=len(self._future))
        self._notify()
        return True
