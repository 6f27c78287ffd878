"""Selectors for the ledger kernel (read side)."""

from ledger_kernel.selectors.journal_selector import EntryPage, JournalSelector
from ledger_kernel.selectors.ledger_selector import (
    AccountBalance,
    EntryTotal,
    LedgerLine,
    LedgerSelector,
    ProjectActivity,
    TrialBalanceRow,
)

__all__ = [
    "AccountBalance",
    "EntryPage",
    "EntryTotal",
    "JournalSelector",
    "LedgerLine",
    "LedgerSelector",
    "ProjectActivity",
    "TrialBalanceRow",
]
