"""
Tests for the serialized Drive push worker.
"""

import asyncio

import pytest

from sharedbill.models.ledger import MonthlyRecord
from sharedbill.services.storage import DriveSession
from sharedbill.services.sync import LedgerSyncWorker

from tests.conftest import FakeDrive


def months(*labels) -> tuple[MonthlyRecord, ...]:
    return tuple(MonthlyRecord(month=label, total_bill=600) for label in labels)


def make_worker(drive: FakeDrive) -> LedgerSyncWorker:
    return LedgerSyncWorker(drive, DriveSession(credentials=None, identity="ni"), "file-1")


class TestLedgerSyncWorker:
    """Tests for push ordering and failure handling."""

    def test_single_push(self):
        """Test that a scheduled payload lands."""
        drive = FakeDrive()

        async def scenario():
            worker = make_worker(drive)
            worker.schedule(months("January 2024"))
            await worker.flush()
            return worker

        worker = asyncio.run(scenario())
        assert drive.pushes == [["January 2024"]]
        assert worker.pushes_completed == 1
        assert worker.last_synced_at is not None

    def test_newer_payload_supersedes_waiting_one(self):
        """Test that only the last committed state follows an in-flight push."""
        drive = FakeDrive()

        async def scenario():
            drive.gate = asyncio.Event()
            worker = make_worker(drive)
            worker.schedule(months("January 2024"))
            await asyncio.sleep(0)
            worker.schedule(months("January 2024", "February 2024"))
            worker.schedule(months("January 2024", "February 2024", "March 2024"))
            drive.gate.set()
            await worker.flush()

        asyncio.run(scenario())
        assert drive.pushes[-1] == ["January 2024", "February 2024", "March 2024"]
        assert ["January 2024", "February 2024"] not in drive.pushes
        assert drive.max_in_flight == 1

    def test_failure_becomes_notification(self):
        """Test that a failed push is reported, not raised."""
        drive = FakeDrive(failing_updates=1)

        async def scenario():
            worker = make_worker(drive)
            ok = await worker.push_now(months("January 2024"))
            return worker, ok

        worker, ok = asyncio.run(scenario())
        assert ok is False
        assert "500" in worker.last_error

        notes = worker.drain_notifications()
        assert len(notes) == 1
        assert notes[0].level == "warning"
        assert "local ledger is safe" in notes[0].message
        assert worker.drain_notifications() == []

    def test_no_automatic_retry(self):
        """Test that a failed payload is not sent again on its own."""
        drive = FakeDrive(failing_updates=1)

        async def scenario():
            worker = make_worker(drive)
            worker.schedule(months("January 2024"))
            await worker.flush()
            await asyncio.sleep(0)
            return worker

        worker = asyncio.run(scenario())
        assert drive.pushes == []
        assert worker.is_busy is False

    def test_next_push_after_failure(self):
        """Test that the next change goes through normally."""
        drive = FakeDrive(failing_updates=1)

        async def scenario():
            worker = make_worker(drive)
            first = await worker.push_now(months("January 2024"))
            second = await worker.push_now(months("January 2024", "February 2024"))
            return worker, first, second

        worker, first, second = asyncio.run(scenario())
        assert (first, second) == (False, True)
        assert worker.last_error is None
        assert drive.pushes == [["January 2024", "February 2024"]]

    def test_closed_session_fails_softly(self):
        """Test that pushing on a closed session is a reported failure."""
        drive = FakeDrive()

        async def scenario():
            worker = make_worker(drive)
            worker.session.close()
            return await worker.push_now(months("January 2024"))

        assert asyncio.run(scenario()) is False
        assert drive.pushes == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
