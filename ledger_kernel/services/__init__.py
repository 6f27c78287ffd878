"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.account_service import AccountService, SeedResult
from ledger_kernel.services.journal_writer import (
    JournalWriter,
    JournalWriteResult,
    WriteStatus,
)
from ledger_kernel.services.period_service import PERIOD_WORKFLOW, PeriodService
from ledger_kernel.services.reversal_service import ReversalResult, ReversalService
from ledger_kernel.services.sequence_service import SequenceService

__all__ = [
    "AccountService",
    "JournalWriteResult",
    "JournalWriter",
    "PERIOD_WORKFLOW",
    "PeriodService",
    "ReversalResult",
    "ReversalService",
    "SeedResult",
    "SequenceService",
    "WriteStatus",
]
