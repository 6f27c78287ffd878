"""
Expense Sub-ledger Domain Models.

The nouns of expense management: expense documents, their lines, and the
fixed category list that maps each category to a default expense account.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.db.types import ZERO, to_money


class ExpenseStatus(str, Enum):
    """Expense document lifecycle states."""
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    PAID = "paid"
    VOID = "void"


@dataclass(frozen=True)
class ExpenseCategory:
    """A spending category and the account it posts to by default."""
    name: str
    account_number: str


DEFAULT_EXPENSE_ACCOUNT = "6900"

EXPENSE_CATEGORIES: tuple[ExpenseCategory, ...] = (
    ExpenseCategory("Cost of Services", "5000"),
    ExpenseCategory("Contractor Costs", "5200"),
    ExpenseCategory("Hosting & Infrastructure", "5300"),
    ExpenseCategory("Third-Party Services", "5400"),
    ExpenseCategory("Salaries & Wages", "6000"),
    ExpenseCategory("Payroll Taxes", "6100"),
    ExpenseCategory("Employee Benefits", "6150"),
    ExpenseCategory("Rent", "6200"),
    ExpenseCategory("Utilities", "6250"),
    ExpenseCategory("Software Subscriptions", "6300"),
    ExpenseCategory("Marketing & Advertising", "6400"),
    ExpenseCategory("Professional Services", "6500"),
    ExpenseCategory("Travel & Entertainment", "6600"),
    ExpenseCategory("Insurance", "6700"),
    ExpenseCategory("Office Supplies", "6800"),
    ExpenseCategory("Bank Fees", "7100"),
    ExpenseCategory("Other Expense", DEFAULT_EXPENSE_ACCOUNT),
)

_CATEGORY_ACCOUNTS = {c.name: c.account_number for c in EXPENSE_CATEGORIES}


def category_account(category: str | None) -> str | None:
    """Default account number for a category name, if it is a known category."""
    if category is None:
        return None
    return _CATEGORY_ACCOUNTS.get(category)


@dataclass(frozen=True)
class ExpenseLineInput:
    """
    One requested expense line.

    ``account`` is an account UUID or number.  When omitted the line posts
    to its category's account, or to Other Expense.
    """
    amount: Decimal
    account: UUID | str | None = None
    category: str | None = None
    description: str | None = None
    department_id: str | None = None
    project_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_money(self.amount))


@dataclass(frozen=True)
class ExpenseLine:
    """A persisted expense line."""
    id: UUID
    line_number: int
    account_id: UUID
    account_number: str
    amount: Decimal
    category: str | None = None
    description: str | None = None
    department_id: str | None = None
    project_id: str | None = None


@dataclass(frozen=True)
class Expense:
    """An accounts-payable expense document."""
    id: UUID
    expense_number: str
    expense_date: date
    description: str
    status: ExpenseStatus
    subtotal: Decimal = ZERO
    tax: Decimal = ZERO
    total: Decimal = ZERO
    vendor_id: UUID | None = None
    vendor_name: str | None = None
    due_date: date | None = None
    category: str | None = None
    payment_method: str | None = None
    reference_number: str | None = None
    notes: str | None = None
    journal_entry_id: UUID | None = None
    payment_entry_id: UUID | None = None
    void_entry_id: UUID | None = None
    submitted_at: datetime | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    paid_at: datetime | None = None
    payment_date: date | None = None
    voided_at: datetime | None = None
    lines: tuple[ExpenseLine, ...] = field(default_factory=tuple)

    @property
    def is_posted(self) -> bool:
        return self.journal_entry_id is not None


@dataclass(frozen=True)
class ExpensePage:
    """One page of ``list_expenses`` results."""
    expenses: tuple[Expense, ...]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.expenses) < self.total
