"""
Local JSON Storage

DESIGN DECISION: The on-device ledger is a single JSON document holding the
whole record array under a fixed key. Every change rewrites the document in
full (no partial patches), via a temp file and an atomic rename, so a crash
mid-write never leaves a truncated ledger behind.

TRADEOFFS:
- The whole ledger is rewritten on every save (fine: one record per month)
- No concurrent writers (the app has a single mutator)
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Optional, Sequence

import structlog
from pydantic import ValidationError as SchemaError

from sharedbill.config import get_settings
from sharedbill.models.audit import AuditEvent
from sharedbill.models.ledger import MonthlyRecord
from sharedbill.services.storage.interface import (
    AuditStorageInterface,
    LocalLedgerStorage,
    LocalStorageError,
)

logger = structlog.get_logger(__name__)


def _atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(text)
    os.replace(tmp, path)


class LocalJsonLedgerStorage(LocalLedgerStorage):
    """
    Records stored as `{"<storage_key>": [ ...records... ]}`.

    Records use the camelCase wire names, the same shape as the
    Drive mirror file.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        storage_key: Optional[str] = None,
    ):
        settings = None if path and storage_key else get_settings().app
        self._path = Path(path) if path else settings.ledger_path
        self._key = storage_key or settings.storage_key

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[MonthlyRecord]:
        """Load records; a missing or unreadable file is an empty ledger."""
        if not self._path.exists():
            return []

        try:
            with open(self._path, encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("local_ledger_unreadable", path=str(self._path), error=str(e))
            return []

        raw = document.get(self._key, []) if isinstance(document, dict) else []
        if not isinstance(raw, list):
            logger.error("local_ledger_malformed", path=str(self._path), key=self._key)
            return []

        records = []
        for item in raw:
            try:
                records.append(MonthlyRecord.model_validate(item))
            except SchemaError as e:
                # Skip malformed records rather than losing the whole ledger
                logger.warning(
                    "local_ledger_record_skipped",
                    path=str(self._path),
                    error=str(e),
                )
        return records

    def save(self, records: Sequence[MonthlyRecord]) -> None:
        """Overwrite the stored ledger with `records`."""
        document = {self._key: [record.to_wire() for record in records]}
        try:
            _atomic_write(self._path, json.dumps(document, ensure_ascii=False, indent=2))
        except OSError as e:
            raise LocalStorageError(f"Failed to write ledger to {self._path}: {e}")


class JsonlAuditStorage(AuditStorageInterface):
    """
    Append-only audit trail, one JSON event per line.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path else get_settings().app.audit_path

    def _append_line(self, line: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "a", encoding="utf-8") as f:
            f.write(line + "\n")

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            await asyncio.to_thread(self._append_line, event.to_json_line())
            return True
        except OSError as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning("audit_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Get recent events, newest first."""
        if not self._path.exists():
            return []

        with open(self._path, encoding="utf-8") as f:
            lines = f.read().splitlines()

        events = []
        for line in reversed(lines):
            if not line.strip():
                continue
            try:
                events.append(AuditEvent.model_validate_json(line))
            except SchemaError:
                continue
            if len(events) >= limit:
                break
        return events
