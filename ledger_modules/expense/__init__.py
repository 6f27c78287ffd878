"""
Expense Sub-ledger Module (``ledger_modules.expense``).

Accounts-payable expense documents with an approval workflow.  Approval
posts the liability, payment posts the cash reduction, and voiding an
approved expense reverses its liability.
"""

from ledger_modules.expense.config import ExpenseConfig
from ledger_modules.expense.models import (
    DEFAULT_EXPENSE_ACCOUNT,
    EXPENSE_CATEGORIES,
    Expense,
    ExpenseCategory,
    ExpenseLine,
    ExpenseLineInput,
    ExpensePage,
    ExpenseStatus,
    category_account,
)
from ledger_modules.expense.orm import ExpenseLineModel, ExpenseModel
from ledger_modules.expense.service import (
    ExpenseService,
    liability_source_id,
    payment_source_id,
)
from ledger_modules.expense.workflows import EXPENSE_WORKFLOW

__all__ = [
    "DEFAULT_EXPENSE_ACCOUNT",
    "EXPENSE_CATEGORIES",
    "EXPENSE_WORKFLOW",
    "Expense",
    "ExpenseCategory",
    "ExpenseConfig",
    "ExpenseLine",
    "ExpenseLineInput",
    "ExpenseLineModel",
    "ExpenseModel",
    "ExpensePage",
    "ExpenseService",
    "ExpenseStatus",
    "category_account",
    "liability_source_id",
    "payment_source_id",
]
