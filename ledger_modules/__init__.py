"""
Ledger Modules.

Orchestration layers over the Ledger Kernel.  Each module owns its
transaction boundary and posts through the kernel ``JournalWriter``.

Modules:
- Auto-posting: invoices, payments, time entries, renewals -> journal
- Reporting: trial balance, income statement, balance sheet, cash flow,
  account drill-down
- Expense: expense documents, approval, payment, void
"""

from ledger_modules import autopost, expense, reporting

__all__ = ["autopost", "expense", "reporting"]
