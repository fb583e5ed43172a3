"""
Ledger Entry Builder

Turns a bill, the payments made against it and the balances carried in
from the previous month into a finished MonthlyRecord.

IMPORTANT: Building never touches storage. Callers decide which balances
count as "prior" (see HistoryStore.balances_before) and what to do with
the result.
"""

from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

from sharedbill.ledger.calculator import compute_expected_shares, round2
from sharedbill.ledger.errors import InvalidInputError, ValidationError
from sharedbill.models.ledger import (
    DEFAULT_WEIGHTS,
    MONTH_NAMES,
    ZERO,
    LedgerPreview,
    MonthlyRecord,
    ParticipantId,
    ValidationIssue,
    parse_month_label,
    to_decimal,
    zero_balances,
)


def format_month_label(month_name: Optional[str], year: Any) -> str:
    """Join the form's month and year fields into a ledger label."""
    return f"{(month_name or '').strip()} {str(year).strip()}".strip()


def _check_month_label(month_label: Optional[str]) -> str:
    """Return the canonical label or raise the matching error."""
    label = (month_label or "").strip()
    tokens = label.split()
    # A bare year is what the form produces when no month was picked
    if not tokens or (len(tokens) == 1 and tokens[0].isdigit()):
        raise ValidationError(
            "Month not selected",
            issues=[ValidationIssue(
                field="month",
                issue_type="missing",
                message="Please select a month.",
                suggested_fix="Pick the month this bill belongs to",
            )],
        )
    try:
        period = parse_month_label(label)
    except ValueError as e:
        raise InvalidInputError(str(e)) from e
    return f"{MONTH_NAMES[period.month - 1]} {period.year}"


def _amount(value: Any, field: str) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError as e:
        raise InvalidInputError(f"{field}: {e}") from e


def _participant_amounts(
    amounts: Optional[Mapping[Any, Any]],
    field: str,
) -> dict[ParticipantId, Decimal]:
    """Normalize a participant map; absent participants count as zero."""
    result = {pid: ZERO for pid in ParticipantId}
    for key, value in (amounts or {}).items():
        try:
            pid = ParticipantId(key)
        except ValueError:
            raise InvalidInputError(f"{field}: unknown participant {key!r}")
        result[pid] = _amount(value if value is not None else 0, f"{field}[{pid.value}]")
    return result


def _compute(
    total_bill: Decimal,
    paid: dict[ParticipantId, Decimal],
    prior_balances: dict[ParticipantId, Decimal],
    weights: Mapping[ParticipantId, int],
) -> LedgerPreview:
    expected = compute_expected_shares(total_bill, weights)
    expected = {pid: expected.get(pid, ZERO) for pid in ParticipantId}

    total_due = {
        pid: round2(expected[pid] + prior_balances[pid])
        for pid in ParticipantId
    }
    new_balance = {
        pid: round2(total_due[pid] - paid[pid])
        for pid in ParticipantId
    }
    return LedgerPreview(
        expected=expected,
        total_due=total_due,
        new_balance=new_balance,
    )


def preview_record(
    total_bill: Any,
    paid: Optional[Mapping[Any, Any]],
    prior_balances: Optional[Mapping[Any, Any]],
    weights: Mapping[ParticipantId, int] = DEFAULT_WEIGHTS,
) -> LedgerPreview:
    """
    Compute expected shares, total due and new balances without saving.

    Unlike build_record, a zero bill is fine here (an empty form).

    Raises:
        InvalidInputError: Negative bill, bad weights or malformed amounts
    """
    return _compute(
        _amount(total_bill, "total_bill"),
        _participant_amounts(paid, "paid"),
        _participant_amounts(prior_balances, "prior_balances"),
        weights,
    )


def build_record(
    month_label: Optional[str],
    total_bill: Any,
    paid: Optional[Mapping[Any, Any]],
    prior_balances: Optional[Mapping[Any, Any]],
    weights: Mapping[ParticipantId, int] = DEFAULT_WEIGHTS,
) -> MonthlyRecord:
    """
    Build the finalized record for one month.

    Args:
        month_label: "Month Year" label, e.g. "January 2024"
        total_bill: Bill amount; must be greater than zero
        paid: What each participant paid (missing means 0)
        prior_balances: Carry-forward of the preceding month (missing means 0)
        weights: Share units per participant

    Returns:
        The MonthlyRecord, with expected and balance_carry_forward derived

    Raises:
        ValidationError: Month not selected or bill not positive
        InvalidInputError: Malformed label, negative payment, bad weights
    """
    month = _check_month_label(month_label)

    bill = _amount(total_bill, "total_bill")
    if bill <= 0:
        raise ValidationError(
            "Bill amount must be greater than zero",
            issues=[ValidationIssue(
                field="total_bill",
                issue_type="invalid_value",
                message="Please enter a bill amount greater than zero.",
                suggested_fix="Use the amount printed on the bill",
            )],
        )

    paid_amounts = _participant_amounts(paid, "paid")
    negative = [pid.value for pid, amount in paid_amounts.items() if amount < 0]
    if negative:
        raise InvalidInputError(f"Payments cannot be negative: {', '.join(negative)}")

    preview = _compute(
        bill,
        paid_amounts,
        _participant_amounts(prior_balances, "prior_balances"),
        weights,
    )

    return MonthlyRecord(
        month=month,
        total_bill=bill,
        expected=preview.expected,
        paid=paid_amounts,
        balance_carry_forward=preview.new_balance,
    )


def carry_forward(
    records: Sequence[MonthlyRecord],
    after: str,
    weights: Mapping[ParticipantId, int] = DEFAULT_WEIGHTS,
) -> list[MonthlyRecord]:
    """
    Re-derive every record later than `after` from the month before it.

    Needed whenever an earlier month changes (edit, back-fill, delete):
    each later balance depends on its predecessor's. Bills and payments
    are kept; `expected` and `balance_carry_forward` are recomputed.

    Returns:
        The record set in its original storage order

    Raises:
        InvalidInputError: If `after` is not a valid month label
    """
    try:
        start = parse_month_label(after)
    except ValueError as e:
        raise InvalidInputError(str(e)) from e

    prior = zero_balances()
    rebuilt: dict[str, MonthlyRecord] = {}
    for record in sorted(records, key=lambda r: r.period):
        if record.period > start:
            preview = _compute(record.total_bill, dict(record.paid), prior, weights)
            record = MonthlyRecord(
                month=record.month,
                total_bill=record.total_bill,
                expected=preview.expected,
                paid=record.paid,
                balance_carry_forward=preview.new_balance,
            )
            rebuilt[record.month] = record
        prior = dict(record.balance_carry_forward)

    return [rebuilt.get(r.month, r) for r in records]
