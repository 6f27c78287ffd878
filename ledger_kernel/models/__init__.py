"""Persistence models for the ledger kernel."""

from ledger_kernel.models.account import (
    ALLOWED_SUB_TYPES,
    Account,
    AccountSubType,
    AccountType,
    NormalBalance,
    normal_balance_for,
)
from ledger_kernel.models.accounting_period import AccountingPeriod, PeriodStatus
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
    SourceType,
)
from ledger_kernel.models.sequence import SequenceCounter

__all__ = [
    "ALLOWED_SUB_TYPES",
    "Account",
    "AccountSubType",
    "AccountType",
    "NormalBalance",
    "normal_balance_for",
    "AccountingPeriod",
    "PeriodStatus",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
    "SourceType",
    "SequenceCounter",
]
