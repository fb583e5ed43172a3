"""Share calculation. No I/O, no side effects."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional

from sharedbill.ledger.errors import InvalidInputError
from sharedbill.models.ledger import ParticipantId, to_decimal

CENT = Decimal("0.01")


def round2(value: Any) -> Decimal:
    """
    Round a monetary value to two places, half away from zero.

    Works on exact decimals, so 0.125 always becomes 0.13.
    """
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def total_weight_units(weights: Mapping[ParticipantId, int]) -> int:
    """Sum of all share units in a weight table."""
    negative = [pid for pid, w in weights.items() if w < 0]
    if negative:
        raise InvalidInputError(
            f"Weights cannot be negative: {', '.join(str(p.value) for p in negative)}"
        )
    return sum(weights.values())


def compute_expected_shares(
    total_bill: Any,
    weights: Mapping[ParticipantId, int],
    total_units: Optional[int] = None,
) -> dict[ParticipantId, Decimal]:
    """
    Split a bill proportionally to the weight table.

    Args:
        total_bill: Bill amount, must not be negative
        weights: Share units per participant
        total_units: Sum of the weights; derived from the table when omitted

    Returns:
        Expected contribution per participant, rounded to cents

    Raises:
        InvalidInputError: Negative bill, negative weight or zero total weight
    """
    try:
        bill = to_decimal(total_bill)
    except ValueError as e:
        raise InvalidInputError(str(e)) from e
    if bill < 0:
        raise InvalidInputError(f"Total bill cannot be negative: {bill}")

    if total_units is None:
        total_units = total_weight_units(weights)
    if total_units == 0:
        raise InvalidInputError("Total weight units must be greater than zero")

    share_per_unit = bill / Decimal(total_units)
    return {
        pid: round2(share_per_unit * Decimal(weight))
        for pid, weight in weights.items()
    }
