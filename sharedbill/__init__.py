"""
Shared Bill Ledger - Source Package

Tracks a shared monthly utility bill split unevenly between four
fixed participants, carrying unpaid and overpaid balances forward
month to month.

DESIGN PRINCIPLES:
1. The ledger engine is pure - no I/O in calculations
2. Local state is authoritative; the remote mirror follows it
3. Fail early, fail visibly
4. Every mutation is undoable and auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Shared Bill Ledger Team"
