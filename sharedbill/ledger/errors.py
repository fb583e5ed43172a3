"""
Ledger Errors

Both kinds are raised synchronously, before any state changes, so a
rejected save never leaves a half-applied mutation behind.
"""

from typing import Optional

from sharedbill.models.ledger import ValidationIssue


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class InvalidInputError(LedgerError, ValueError):
    """Malformed month label, negative amount or unusable weight table."""
    pass


class ValidationError(LedgerError):
    """
    A save was attempted with inputs the user must correct first.

    Carries the individual issues so the UI can show each one.
    """

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        self.issues = issues or []
        super().__init__(message)

    @property
    def user_message(self) -> str:
        """Short text for non-technical users."""
        if not self.issues:
            return str(self)
        return " ".join(issue.message for issue in self.issues)
