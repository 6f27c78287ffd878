"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the Chart of Accounts (COA) -- the target
    of every journal line -- and the closed sub-type vocabulary per account
    type.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - account_number is unique (uq_account_number).
    - normal_balance is a pure function of account_type
      (normal_balance_for); there is no setter that can disagree with it.
    - sub_type is one of ALLOWED_SUB_TYPES[account_type].

Failure modes:
    - IntegrityError on a duplicate account_number that slipped past the
      service-level check.

Audit relevance:
    Accounts are never deleted, only deactivated, because historical
    journal lines reference them.  account_type and account_number are
    frozen once referenced, since changing them would reclassify history.
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalLine


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """Side on which an account naturally increases."""

    DEBIT = "debit"
    CREDIT = "credit"


class AccountSubType(str, Enum):
    """Statement classification within an account type."""

    CURRENT_ASSET = "Current Asset"
    NON_CURRENT_ASSET = "Non-Current Asset"
    FIXED_ASSET = "Fixed Asset"
    CURRENT_LIABILITY = "Current Liability"
    LONG_TERM_LIABILITY = "Long-Term Liability"
    EQUITY = "Equity"
    RETAINED_EARNINGS = "Retained Earnings"
    OPERATING_REVENUE = "Operating Revenue"
    OTHER_REVENUE = "Other Revenue"
    COGS = "COGS"
    OPERATING_EXPENSE = "Operating Expense"
    OTHER_EXPENSE = "Other Expense"


ALLOWED_SUB_TYPES: dict[AccountType, tuple[AccountSubType, ...]] = {
    AccountType.ASSET: (
        AccountSubType.CURRENT_ASSET,
        AccountSubType.NON_CURRENT_ASSET,
        AccountSubType.FIXED_ASSET,
    ),
    AccountType.LIABILITY: (
        AccountSubType.CURRENT_LIABILITY,
        AccountSubType.LONG_TERM_LIABILITY,
    ),
    AccountType.EQUITY: (
        AccountSubType.EQUITY,
        AccountSubType.RETAINED_EARNINGS,
    ),
    AccountType.REVENUE: (
        AccountSubType.OPERATING_REVENUE,
        AccountSubType.OTHER_REVENUE,
    ),
    AccountType.EXPENSE: (
        AccountSubType.COGS,
        AccountSubType.OPERATING_EXPENSE,
        AccountSubType.OTHER_EXPENSE,
    ),
}

DEFAULT_SUB_TYPE: dict[AccountType, AccountSubType] = {
    AccountType.ASSET: AccountSubType.CURRENT_ASSET,
    AccountType.LIABILITY: AccountSubType.CURRENT_LIABILITY,
    AccountType.EQUITY: AccountSubType.EQUITY,
    AccountType.REVENUE: AccountSubType.OPERATING_REVENUE,
    AccountType.EXPENSE: AccountSubType.OPERATING_EXPENSE,
}


def normal_balance_for(account_type: AccountType | str) -> NormalBalance:
    """Asset and expense accounts are debit-normal; everything else credit-normal."""
    account_type = AccountType(account_type)
    if account_type in (AccountType.ASSET, AccountType.EXPENSE):
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT


def is_sub_type_allowed(account_type: AccountType | str, sub_type: AccountSubType | str) -> bool:
    try:
        return AccountSubType(sub_type) in ALLOWED_SUB_TYPES[AccountType(account_type)]
    except ValueError:
        return False


class Account(TrackedBase):
    """
    Chart of Accounts entry.

    Contract:
        account_number is globally unique.  normal_balance is written only
        through ``assign_type`` so it always agrees with account_type.

    Non-goals:
        - No stored balance.  Balances are derived from journal lines by
          LedgerSelector.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("account_number", name="uq_account_number"),
        Index("idx_account_type", "account_type"),
        Index("idx_account_active", "is_active"),
    )

    account_number: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    sub_type: Mapped[AccountSubType] = mapped_column(String(40), nullable=False)

    # Derived from account_type; see assign_type()
    normal_balance: Mapped[NormalBalance] = mapped_column(String(10), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    tax_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Reporting hierarchy only; a parent does not own its children
    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    journal_lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.account_number}: {self.name}>"

    def assign_type(self, account_type: AccountType | str) -> None:
        """Set account_type and the normal balance that follows from it."""
        account_type = AccountType(account_type)
        self.account_type = account_type.value
        self.normal_balance = normal_balance_for(account_type).value

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.DEBIT

    @property
    def is_credit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.CREDIT
