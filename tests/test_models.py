"""
Tests for Shared Bill Ledger

Test strategy:
1. Unit tests for individual components (models, ledger engine)
2. Integration tests for flows (with fake remote storage)
3. No real API calls in tests (use fakes)
"""

import json

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError as SchemaError

from sharedbill.models.ledger import (
    DEFAULT_WEIGHTS,
    PARTICIPANTS,
    MonthlyRecord,
    Participant,
    ParticipantId,
    ValidationIssue,
    describe_balance,
    format_amount,
    parse_month_label,
    to_decimal,
)
from sharedbill.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestParticipants:
    """Tests for the participant table."""

    def test_four_fixed_participants(self):
        """Test that exactly NI, AM, AD, SB exist."""
        assert [p.id for p in PARTICIPANTS] == [
            ParticipantId.NI, ParticipantId.AM, ParticipantId.AD, ParticipantId.SB,
        ]

    def test_default_weights(self):
        """Test the 2/2/1/1 split."""
        assert DEFAULT_WEIGHTS == {
            ParticipantId.NI: 2,
            ParticipantId.AM: 2,
            ParticipantId.AD: 1,
            ParticipantId.SB: 1,
        }

    def test_participant_rejects_negative_weight(self):
        """Test that a weight below zero is rejected."""
        with pytest.raises(SchemaError):
            Participant(id=ParticipantId.NI, name="NI", weight=-1)

    def test_participant_is_frozen(self):
        """Test that participants cannot be changed after creation."""
        with pytest.raises(SchemaError):
            PARTICIPANTS[0].weight = 5


class TestMoney:
    """Tests for amount conversion and display."""

    def test_float_goes_through_repr(self):
        """Test that 0.1 becomes exactly Decimal('0.1')."""
        assert to_decimal(0.1) == Decimal("0.1")

    def test_string_amount(self):
        """Test that numeric strings are accepted."""
        assert to_decimal(" 1200.50 ") == Decimal("1200.50")

    def test_rejects_garbage(self):
        """Test that non-numeric input is rejected."""
        with pytest.raises(ValueError):
            to_decimal("twelve hundred")

    def test_rejects_boolean(self):
        """Test that booleans are not treated as 0/1."""
        with pytest.raises(ValueError):
            to_decimal(True)

    def test_rejects_non_finite(self):
        """Test that NaN and infinity are rejected."""
        with pytest.raises(ValueError):
            to_decimal(float("nan"))
        with pytest.raises(ValueError):
            to_decimal("Infinity")

    def test_format_amount(self):
        """Test whole and fractional formatting."""
        assert format_amount(Decimal("1200")) == "1,200"
        assert format_amount(Decimal("33.5")) == "33.50"

    def test_describe_balance(self):
        """Test owes / credit / settled wording."""
        assert describe_balance(Decimal("200")) == "Owes ₹200"
        assert describe_balance(Decimal("-50.5")) == "Credit ₹50.50"
        assert describe_balance(Decimal("0")) == "Settled"
        assert describe_balance(Decimal("10"), currency="$") == "Owes $10"


class TestMonthLabels:
    """Tests for month label parsing."""

    def test_parse_month_label(self):
        """Test a well-formed label."""
        assert parse_month_label("March 2024") == date(2024, 3, 1)

    @pytest.mark.parametrize("label", [
        "",
        "2024",
        "Jan 2024",
        "march 2024",
        "March",
        "March 20x4",
        "March 2024 extra",
    ])
    def test_parse_rejects_malformed(self, label):
        """Test that anything but 'Month Year' is rejected."""
        with pytest.raises(ValueError):
            parse_month_label(label)


class TestMonthlyRecord:
    """Tests for the MonthlyRecord model."""

    def test_reads_wire_format(self):
        """Test loading a record written with camelCase keys."""
        record = MonthlyRecord.model_validate({
            "month": "January 2024",
            "totalBill": 1200,
            "expected": {"NI": 400, "AM": 400, "AD": 200, "SB": 200},
            "paid": {"NI": 400, "AM": 400, "AD": 200, "SB": 200},
            "balanceCarryForward": {"NI": 0, "AM": 0, "AD": 0, "SB": 0},
        })
        assert record.total_bill == Decimal("1200")
        assert record.expected[ParticipantId.NI] == Decimal("400")
        assert record.period == date(2024, 1, 1)

    def test_to_wire_uses_camel_case_and_numbers(self):
        """Test that serialization matches the stored file shape."""
        record = MonthlyRecord(
            month="February 2024",
            total_bill=Decimal("600"),
            balance_carry_forward={ParticipantId.SB: Decimal("200")},
        )
        wire = record.to_wire()
        assert wire["totalBill"] == 600.0
        assert wire["balanceCarryForward"]["SB"] == 200.0
        assert "total_bill" not in wire
        json.dumps(wire)

    def test_missing_participants_are_zero(self):
        """Test that absent participants are filled with zero."""
        record = MonthlyRecord(month="March 2024", total_bill=0, paid={"NI": 100})
        assert set(record.paid) == set(ParticipantId)
        assert record.paid[ParticipantId.AM] == Decimal("0")

    def test_month_label_is_canonicalized(self):
        """Test that extra whitespace inside the label is collapsed."""
        record = MonthlyRecord(month="  March   2024 ", total_bill=10)
        assert record.month == "March 2024"

    def test_rejects_bad_month(self):
        """Test that malformed labels never make it into a record."""
        with pytest.raises(SchemaError):
            MonthlyRecord(month="Marc 2024", total_bill=10)

    def test_rejects_negative_bill(self):
        """Test that a negative bill is rejected."""
        with pytest.raises(SchemaError):
            MonthlyRecord(month="March 2024", total_bill=-1)

    def test_rejects_unknown_participant(self):
        """Test that only the four participants are accepted."""
        with pytest.raises(SchemaError):
            MonthlyRecord(month="March 2024", total_bill=10, paid={"XX": 5})

    def test_record_is_frozen(self):
        """Test that records are replaced whole, never edited."""
        record = MonthlyRecord(month="March 2024", total_bill=10)
        with pytest.raises(SchemaError):
            record.total_bill = Decimal("20")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.RECORD_SAVED,
            description="Test month saved",
        )
        assert event.event_type == AuditEventType.RECORD_SAVED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            entity_type="month",
            entity_key="March 2024",
            description="Month deleted",
            details={"existed": True},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "record_deleted"
        assert log_dict["entity_key"] == "March 2024"
        assert log_dict["details"]["existed"] is True

    def test_audit_event_json_line_round_trip(self):
        """Test that a JSON line reads back as the same event."""
        event = AuditEventBuilder.sync_failed("file-1", "HTTP 500")
        restored = AuditEvent.model_validate_json(event.to_json_line())
        assert restored.event_id == event.event_id
        assert restored.event_type == AuditEventType.SYNC_FAILED
        assert restored.error_message == "HTTP 500"

    def test_audit_event_builder_record_saved(self):
        """Test AuditEventBuilder.record_saved."""
        correlation_id = uuid4()

        event = AuditEventBuilder.record_saved(
            month="January 2024",
            total_bill="1200",
            replaced=False,
            balances={"NI": "0", "AM": "0", "AD": "0", "SB": "0"},
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.RECORD_SAVED
        assert event.entity_key == "January 2024"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_record_replaced(self):
        """Test that re-saving a month is audited as a replacement."""
        event = AuditEventBuilder.record_saved(
            month="January 2024",
            total_bill="1300",
            replaced=True,
            balances={},
        )
        assert event.event_type == AuditEventType.RECORD_REPLACED

    def test_audit_event_builder_history_moved(self):
        """Test undo and redo event types."""
        assert AuditEventBuilder.history_moved("undo", 2).event_type == AuditEventType.UNDO_APPLIED
        assert AuditEventBuilder.history_moved("redo", 3).event_type == AuditEventType.REDO_APPLIED

    def test_save_rejected_is_warning(self):
        """Test that rejected saves are logged as warnings."""
        event = AuditEventBuilder.save_rejected(None, "Month not selected")
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "Month not selected"


class TestValidationIssue:
    """Tests for ValidationIssue model."""

    def test_default_severity(self):
        """Test that issues default to errors."""
        issue = ValidationIssue(field="month", issue_type="missing", message="Pick one")
        assert issue.severity == "error"

    def test_rejects_unknown_severity(self):
        """Test the severity whitelist."""
        with pytest.raises(SchemaError):
            ValidationIssue(field="month", issue_type="missing", message="x", severity="fatal")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
