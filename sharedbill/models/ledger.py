"""
Core Data Models for Shared Bill Ledger

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for local storage and the Drive mirror
4. Stay wire-compatible with ledgers written by earlier versions of the app

DESIGN DECISION: Money is carried as Decimal internally but written to JSON
as a plain number, so existing ledger files (camelCase keys, numeric amounts)
load and save unchanged.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)


# =============================================================================
# PARTICIPANTS - Finite set of valid values
# =============================================================================

class ParticipantId(str, Enum):
    """
    Identity tokens of the cost-sharing participants.

    The set is closed: participants are never created or destroyed at runtime.
    """
    NI = "NI"
    AM = "AM"
    AD = "AD"
    SB = "SB"


class Participant(BaseModel):
    """A cost-sharing party and its share multiplier."""
    model_config = ConfigDict(frozen=True)

    id: ParticipantId
    name: str = Field(..., min_length=1, max_length=50)
    weight: int = Field(
        ...,
        ge=0,
        description="Number of share units this participant carries"
    )


PARTICIPANTS: tuple[Participant, ...] = (
    Participant(id=ParticipantId.NI, name="NI", weight=2),
    Participant(id=ParticipantId.AM, name="AM", weight=2),
    Participant(id=ParticipantId.AD, name="AD", weight=1),
    Participant(id=ParticipantId.SB, name="SB", weight=1),
)

DEFAULT_WEIGHTS: dict[ParticipantId, int] = {p.id: p.weight for p in PARTICIPANTS}


# =============================================================================
# MONEY
# =============================================================================

def to_decimal(value: Any) -> Decimal:
    """
    Convert a user or wire value to Decimal.

    Floats go through their shortest repr so 0.1 becomes Decimal("0.1"),
    not the binary expansion.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError("Amount must be a number, not a boolean")
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"Not a valid amount: {value!r}")
    else:
        raise ValueError(f"Not a valid amount: {value!r}")

    if not result.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    return result


Money = Annotated[
    Decimal,
    BeforeValidator(to_decimal),
    PlainSerializer(float, return_type=float, when_used="json"),
]

ZERO = Decimal("0")


def zero_balances() -> dict[ParticipantId, Decimal]:
    """All-participant zero balance map."""
    return {pid: ZERO for pid in ParticipantId}


def format_amount(amount: Decimal) -> str:
    """Whole amounts print without decimals, others with two."""
    if amount == amount.to_integral_value():
        return f"{amount:,.0f}"
    return f"{amount:,.2f}"


def describe_balance(amount: Decimal, currency: str = "₹") -> str:
    """
    Human-readable standing for a carry-forward balance.

    Positive means the participant still owes, negative means credit.
    """
    if amount > 0:
        return f"Owes {currency}{format_amount(amount)}"
    if amount < 0:
        return f"Credit {currency}{format_amount(-amount)}"
    return "Settled"


# =============================================================================
# MONTH LABELS
# =============================================================================

MONTH_NAMES: tuple[str, ...] = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def parse_month_label(label: str) -> date:
    """
    Parse a "Month Year" label into the first day of that month.

    Raises ValueError on anything that isn't one of the twelve English
    month names followed by a positive integer year.
    """
    if not isinstance(label, str):
        raise ValueError(f"Month label must be a string, got {type(label).__name__}")

    parts = label.split()
    if len(parts) != 2:
        raise ValueError(f"Month label must look like 'January 2024', got {label!r}")

    month_name, year_text = parts
    if month_name not in MONTH_NAMES:
        raise ValueError(f"Unknown month name: {month_name!r}")
    if not year_text.isdigit() or int(year_text) <= 0:
        raise ValueError(f"Year must be a positive integer, got {year_text!r}")

    return date(int(year_text), MONTH_NAMES.index(month_name) + 1, 1)


# =============================================================================
# CORE LEDGER MODEL
# =============================================================================

ParticipantAmounts = dict[ParticipantId, Money]


class MonthlyRecord(BaseModel):
    """
    One month of ledger history.

    CRITICAL: `expected` and `balance_carry_forward` are derived by the
    ledger builder. Records are replaced whole, never edited field by field.
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    month: str = Field(
        ...,
        description="'Month Year' label; unique key within the ledger"
    )
    total_bill: Money = Field(
        ...,
        alias="totalBill",
        ge=0,
        description="Bill amount for the month"
    )
    expected: ParticipantAmounts = Field(
        default_factory=zero_balances,
        description="Weight-proportional share of the bill"
    )
    paid: ParticipantAmounts = Field(
        default_factory=zero_balances,
        description="What each participant actually paid"
    )
    balance_carry_forward: ParticipantAmounts = Field(
        default_factory=zero_balances,
        alias="balanceCarryForward",
        description="Signed balance: positive owes, negative credit"
    )

    @field_validator('month')
    @classmethod
    def canonical_month_label(cls, v: str) -> str:
        """Reject malformed labels and collapse inner whitespace."""
        period = parse_month_label(v)
        return f"{MONTH_NAMES[period.month - 1]} {period.year}"

    @field_validator('expected', 'paid', 'balance_carry_forward')
    @classmethod
    def fill_missing_participants(cls, v: dict) -> dict:
        """A participant absent from the map counts as zero."""
        return {pid: v.get(pid, ZERO) for pid in ParticipantId}

    @property
    def period(self) -> date:
        """First day of the month this record covers."""
        return parse_month_label(self.month)

    def to_wire(self) -> dict:
        """JSON-ready dict using the camelCase wire names."""
        return self.model_dump(mode="json", by_alias=True)


class LedgerPreview(BaseModel):
    """
    Live computation shown while a month is being entered.

    Nothing here is persisted; saving goes through the builder again.
    """
    model_config = ConfigDict(frozen=True)

    expected: ParticipantAmounts
    total_due: ParticipantAmounts
    new_balance: ParticipantAmounts


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )
