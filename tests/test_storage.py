"""
Tests for local persistence and the Drive wire helpers.

No network: the Drive tests only cover body building, parsing and
session handling.
"""

import asyncio
import json

import pytest
from decimal import Decimal

from sharedbill.config import GoogleDriveSettings
from sharedbill.models.audit import AuditEventBuilder, AuditEventType
from sharedbill.models.ledger import MonthlyRecord, ParticipantId
from sharedbill.services.storage import (
    AuthError,
    DriveSession,
    GoogleDriveLedgerStorage,
    JsonlAuditStorage,
    LocalJsonLedgerStorage,
    LocalStorageError,
    SyncError,
)
from sharedbill.services.storage.google_drive import (
    MULTIPART_BOUNDARY,
    build_multipart_body,
    parse_remote_records,
)


def record(month: str, bill=600) -> MonthlyRecord:
    return MonthlyRecord(
        month=month,
        total_bill=bill,
        paid={"NI": 200, "AM": 200, "AD": 100},
        balance_carry_forward={"SB": 100},
    )


@pytest.fixture
def ledger_storage(tmp_path):
    return LocalJsonLedgerStorage(path=tmp_path / "ledger.json", storage_key="sibiwifi_records")


class TestLocalJsonLedgerStorage:
    """Tests for the on-device ledger file."""

    def test_missing_file_is_empty(self, ledger_storage):
        """Test that a fresh install starts with no records."""
        assert ledger_storage.load() == []

    def test_save_then_load(self, ledger_storage):
        """Test that saved records read back unchanged."""
        records = [record("January 2024"), record("February 2024", 900)]
        ledger_storage.save(records)
        assert [r.to_wire() for r in ledger_storage.load()] == [r.to_wire() for r in records]

    def test_file_shape(self, ledger_storage):
        """Test the stored document: one key holding the camelCase array."""
        ledger_storage.save([record("January 2024")])
        document = json.loads(ledger_storage.path.read_text(encoding="utf-8"))
        assert list(document) == ["sibiwifi_records"]
        item = document["sibiwifi_records"][0]
        assert item["month"] == "January 2024"
        assert item["totalBill"] == 600
        assert item["balanceCarryForward"]["SB"] == 100

    def test_save_overwrites(self, ledger_storage):
        """Test that each save replaces the whole ledger."""
        ledger_storage.save([record("January 2024"), record("February 2024")])
        ledger_storage.save([record("March 2024")])
        assert [r.month for r in ledger_storage.load()] == ["March 2024"]

    def test_no_temp_file_left_behind(self, ledger_storage, tmp_path):
        """Test that the atomic write cleans up."""
        ledger_storage.save([record("January 2024")])
        assert sorted(p.name for p in tmp_path.iterdir()) == ["ledger.json"]

    def test_corrupt_file_is_empty(self, ledger_storage):
        """Test that unreadable JSON doesn't crash startup."""
        ledger_storage.path.write_text("{not json", encoding="utf-8")
        assert ledger_storage.load() == []

    def test_malformed_record_is_skipped(self, ledger_storage):
        """Test that one bad record doesn't lose the rest."""
        good = record("January 2024").to_wire()
        ledger_storage.path.write_text(json.dumps({
            "sibiwifi_records": [good, {"month": "Nonsense", "totalBill": 5}],
        }), encoding="utf-8")
        assert [r.month for r in ledger_storage.load()] == ["January 2024"]

    def test_reads_legacy_integer_amounts(self, ledger_storage):
        """Test files written with plain integers."""
        ledger_storage.path.write_text(json.dumps({
            "sibiwifi_records": [{
                "month": "January 2024",
                "totalBill": 1200,
                "expected": {"NI": 400, "AM": 400, "AD": 200, "SB": 200},
                "paid": {"NI": 400, "AM": 400, "AD": 200, "SB": 200},
                "balanceCarryForward": {"NI": 0, "AM": 0, "AD": 0, "SB": 0},
            }],
        }), encoding="utf-8")
        loaded = ledger_storage.load()
        assert loaded[0].expected[ParticipantId.NI] == Decimal("400")

    def test_write_failure_raises(self, tmp_path):
        """Test that a write into a file path used as a directory fails loudly."""
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        storage = LocalJsonLedgerStorage(path=blocker / "ledger.json", storage_key="k")
        with pytest.raises(LocalStorageError):
            storage.save([record("January 2024")])


class TestJsonlAuditStorage:
    """Tests for the append-only audit trail."""

    def test_append_and_read_newest_first(self, tmp_path):
        """Test that events read back newest first."""
        storage = JsonlAuditStorage(path=tmp_path / "audit.jsonl")
        first = AuditEventBuilder.record_saved("January 2024", "1200", False, {})
        second = AuditEventBuilder.record_deleted("January 2024", True)

        assert asyncio.run(storage.append_event(first)) is True
        assert asyncio.run(storage.append_event(second)) is True

        events = asyncio.run(storage.get_recent_events())
        assert [e.event_type for e in events] == [
            AuditEventType.RECORD_DELETED,
            AuditEventType.RECORD_SAVED,
        ]

    def test_limit(self, tmp_path):
        """Test the result limit."""
        storage = JsonlAuditStorage(path=tmp_path / "audit.jsonl")
        for _ in range(5):
            asyncio.run(storage.append_event(AuditEventBuilder.sync_completed("f", 1)))
        assert len(asyncio.run(storage.get_recent_events(limit=3))) == 3

    def test_missing_file(self, tmp_path):
        """Test that no trail yet means no events."""
        storage = JsonlAuditStorage(path=tmp_path / "audit.jsonl")
        assert asyncio.run(storage.get_recent_events()) == []


class TestDriveWire:
    """Tests for the Drive request body and file parsing."""

    def test_multipart_body(self):
        """Test that metadata comes first, then the record array."""
        body = build_multipart_body({"name": "ni_bill_record.json"}, [record("January 2024")])
        parts = body.split(f"--{MULTIPART_BOUNDARY}")
        assert body.rstrip().endswith(f"--{MULTIPART_BOUNDARY}--")
        assert '"name": "ni_bill_record.json"' in parts[1]
        content = parts[2].split("\r\n\r\n", 1)[1].strip()
        assert json.loads(content)[0]["month"] == "January 2024"

    def test_parse_remote_records(self):
        """Test reading a remote file's content."""
        payload = json.dumps([record("January 2024").to_wire()])
        records = parse_remote_records(payload)
        assert records[0].month == "January 2024"

    def test_parse_rejects_non_array(self):
        """Test that the remote file must hold an array."""
        with pytest.raises(SyncError):
            parse_remote_records({"sibiwifi_records": []})

    def test_parse_rejects_malformed_record(self):
        """Test that bad remote records are a sync error."""
        with pytest.raises(SyncError):
            parse_remote_records([{"month": "Nope", "totalBill": 1}])


class TestGoogleDriveLedgerStorage:
    """Tests for Drive storage that don't need the network."""

    @pytest.fixture
    def drive(self, tmp_path):
        settings = GoogleDriveSettings(
            credentials_path=str(tmp_path / "missing.json"),
            folder_name="SibiWiFiTracker",
            file_suffix="_bill_record.json",
        )
        return GoogleDriveLedgerStorage(settings=settings)

    def test_file_name_uses_identity(self, drive):
        """Test the per-identity file name."""
        session = DriveSession(credentials=None, identity="ni-ledger")
        assert drive.file_name_for(session) == "ni-ledger_bill_record.json"

    def test_missing_credentials_is_auth_error(self, drive):
        """Test that a missing key file fails authentication."""
        with pytest.raises(AuthError) as exc:
            asyncio.run(drive.authenticate())
        assert exc.value.guidance

    def test_closed_session_is_sync_error(self, drive):
        """Test that a closed session can't be used."""
        session = DriveSession(credentials=None, identity="ni", http=object())
        session.close()
        assert session.closed
        with pytest.raises(SyncError):
            asyncio.run(drive.update_ledger_file(session, "file-1", [record("January 2024")]))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
