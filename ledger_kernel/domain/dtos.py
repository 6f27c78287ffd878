"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable data structures that cross the service boundary: LineSpec
    (caller input to the journal writer) and the read-side snapshots
    AccountInfo, PeriodInfo, JournalLineInfo and JournalEntryInfo.

Architecture position:
    Kernel > Domain -- zero I/O.  ``from_model()`` class methods are the
    boundary converters; they are only invoked from services and selectors.

Invariants enforced:
    - Services and selectors return these DTOs, never ORM entities, so a
      caller cannot mutate a posted entry by accident.
    - LineSpec amounts are Decimal after construction.

Data flow:
    LineSpec -> JournalWriter -> JournalEntry (ORM) -> JournalEntryInfo
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from ledger_kernel.db.types import ZERO, to_money

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account as AccountModel
    from ledger_kernel.models.accounting_period import AccountingPeriod as PeriodModel
    from ledger_kernel.models.journal import JournalEntry as JournalEntryModel


@dataclass(frozen=True)
class LineSpec:
    """
    One requested journal line.

    ``account`` is either the account's UUID or its account number; the
    journal writer resolves it.  Zero lines (debit == credit == 0) are
    accepted here and dropped by the writer.
    """

    account: UUID | str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str | None = None
    department_id: str | None = None
    project_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", to_money(self.debit))
        object.__setattr__(self, "credit", to_money(self.credit))

    @classmethod
    def dr(cls, account: UUID | str, amount, **kwargs) -> LineSpec:
        return cls(account=account, debit=amount, **kwargs)

    @classmethod
    def cr(cls, account: UUID | str, amount, **kwargs) -> LineSpec:
        return cls(account=account, credit=amount, **kwargs)

    @property
    def is_zero(self) -> bool:
        return self.debit == ZERO and self.credit == ZERO

    def swapped(self) -> LineSpec:
        """Same line with debit and credit exchanged (used for reversals)."""
        return LineSpec(
            account=self.account,
            debit=self.credit,
            credit=self.debit,
            description=self.description,
            department_id=self.department_id,
            project_id=self.project_id,
        )


@dataclass(frozen=True)
class AccountInfo:
    """Snapshot of a chart-of-accounts entry."""

    id: UUID
    account_number: str
    name: str
    account_type: str
    sub_type: str
    normal_balance: str
    is_active: bool
    description: str | None = None
    tax_code: str | None = None
    parent_id: UUID | None = None

    @classmethod
    def from_model(cls, account: AccountModel) -> AccountInfo:
        return cls(
            id=account.id,
            account_number=account.account_number,
            name=account.name,
            account_type=str(getattr(account.account_type, "value", account.account_type)),
            sub_type=str(getattr(account.sub_type, "value", account.sub_type)),
            normal_balance=str(getattr(account.normal_balance, "value", account.normal_balance)),
            is_active=account.is_active,
            description=account.description,
            tax_code=account.tax_code,
            parent_id=account.parent_id,
        )

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == "debit"


@dataclass(frozen=True)
class PeriodInfo:
    """Snapshot of an accounting period."""

    id: UUID
    name: str
    start_date: date
    end_date: date
    fiscal_year: int
    fiscal_quarter: int
    fiscal_month: int
    status: str
    closed_at: datetime | None = None
    closed_by_id: UUID | None = None
    locked_at: datetime | None = None
    locked_by_id: UUID | None = None

    @classmethod
    def from_model(cls, period: PeriodModel) -> PeriodInfo:
        return cls(
            id=period.id,
            name=period.name,
            start_date=period.start_date,
            end_date=period.end_date,
            fiscal_year=period.fiscal_year,
            fiscal_quarter=period.fiscal_quarter,
            fiscal_month=period.fiscal_month,
            status=str(getattr(period.status, "value", period.status)),
            closed_at=period.closed_at,
            closed_by_id=period.closed_by_id,
            locked_at=period.locked_at,
            locked_by_id=period.locked_by_id,
        )

    @property
    def is_open(self) -> bool:
        return self.status == "open"


@dataclass(frozen=True)
class JournalLineInfo:
    """A posted line with its account denormalized for display."""

    account_id: UUID
    account_number: str
    account_name: str
    debit: Decimal
    credit: Decimal
    description: str | None = None
    department_id: str | None = None
    project_id: str | None = None
    line_seq: int = 0


@dataclass(frozen=True)
class JournalEntryInfo:
    """Snapshot of a journal entry and its lines."""

    id: UUID
    entry_number: int | None
    entry_date: date
    posting_date: date
    period_id: UUID
    description: str
    source_type: str
    source_id: str | None
    status: str
    total_debits: Decimal
    total_credits: Decimal
    lines: tuple[JournalLineInfo, ...] = field(default_factory=tuple)
    reversal_of_id: UUID | None = None
    reversed_by_id: UUID | None = None
    posted_at: datetime | None = None
    created_by_id: UUID | None = None

    @classmethod
    def from_model(cls, entry: JournalEntryModel) -> JournalEntryInfo:
        lines = tuple(
            JournalLineInfo(
                account_id=line.account_id,
                account_number=line.account.account_number,
                account_name=line.account.name,
                debit=line.debit,
                credit=line.credit,
                description=line.description,
                department_id=line.department_id,
                project_id=line.project_id,
                line_seq=line.line_seq,
            )
            for line in sorted(entry.lines, key=lambda ln: ln.line_seq)
        )
        return cls(
            id=entry.id,
            entry_number=entry.entry_number,
            entry_date=entry.entry_date,
            posting_date=entry.posting_date,
            period_id=entry.period_id,
            description=entry.description,
            source_type=str(getattr(entry.source_type, "value", entry.source_type)),
            source_id=entry.source_id,
            status=str(getattr(entry.status, "value", entry.status)),
            total_debits=entry.total_debits,
            total_credits=entry.total_credits,
            lines=lines,
            reversal_of_id=entry.reversal_of_id,
            reversed_by_id=entry.reversed_by_id,
            posted_at=entry.posted_at,
            created_by_id=entry.created_by_id,
        )

    @property
    def is_posted(self) -> bool:
        return self.status == "posted"

    @property
    def is_reversed(self) -> bool:
        return self.status == "reversed"
