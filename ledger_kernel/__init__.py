"""
Ledger Kernel

A double-entry accounting core with:
- Chart of accounts with type-derived normal balances
- Accounting periods with open/closed/locked control
- Balanced, sequentially numbered journal entries
- Idempotent posting keyed by source record
- Reversal instead of mutation
"""

__version__ = "0.1.0"
