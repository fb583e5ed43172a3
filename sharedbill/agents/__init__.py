"""AI Agents package."""

from sharedbill.agents.insights import (
    FAILURE_RESPONSE,
    NO_DATA_RESPONSE,
    BillInsightsAgent,
    describe_weights,
)

__all__ = [
    "FAILURE_RESPONSE",
    "NO_DATA_RESPONSE",
    "BillInsightsAgent",
    "describe_weights",
]
