"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal lines -- the
    single source of financial truth in the ledger.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - entry_number is unique (uq_journal_entry_number) and assigned from
      the locked sequence counter at posting time.
    - source_key is unique (uq_journal_source_key): at most one entry per
      external source record.  NULL for manual and reversal entries, which
      have no natural source key.
    - debit >= 0 and credit >= 0 on every line (ck_journal_line_*).
    - Balance (debits == credits within 0.01) is checked by JournalWriter
      before the row is written; is_balanced is the read-side mirror.

Failure modes:
    - IntegrityError on a duplicate source_key under concurrent posting;
      JournalWriter converts this into an ALREADY_EXISTS result.
    - IntegrityError on a duplicate entry_number (sequence misuse).

Audit relevance:
    Entries are never updated or deleted after posting, except for the
    status flip to REVERSED and the reversed_by_id link written by
    ReversalService.  A reversal is a new entry pointing back through
    reversal_of_id.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.accounting_period import AccountingPeriod


class JournalEntryStatus(str, Enum):
    """Lifecycle status of a journal entry.

    One-way: DRAFT -> POSTED -> REVERSED.
    """

    DRAFT = "draft"
    POSTED = "posted"
    REVERSED = "reversed"


class SourceType(str, Enum):
    """Where a journal entry came from."""

    MANUAL = "manual"
    INVOICE = "invoice"
    PAYMENT = "payment"
    TIME_ENTRY = "time_entry"
    RENEWAL = "renewal"
    EXPENSE = "expense"
    REVERSAL = "reversal"
    ADJUSTMENT = "adjustment"


# Source types without a natural external key; never deduplicated.
UNKEYED_SOURCE_TYPES = frozenset({SourceType.MANUAL, SourceType.REVERSAL})

# Statuses whose lines count toward balances.  A reversed entry stays in
# the ledger and nets to zero against its reversal.
BALANCE_STATUSES = (JournalEntryStatus.POSTED.value, JournalEntryStatus.REVERSED.value)


def make_source_key(source_type: SourceType | str, source_id: str | None) -> str | None:
    """Idempotency key for an external source record, or None if unkeyed."""
    source_type = SourceType(source_type)
    if source_id is None or source_type in UNKEYED_SOURCE_TYPES:
        return None
    return f"{source_type.value}:{source_id}"


class JournalEntry(TrackedBase):
    """
    Journal entry header -- the atomic unit of double-entry accounting.

    Contract:
        Created DRAFT, flushed with its lines, then stamped POSTED with an
        entry_number in the same transaction.  A failed post leaves nothing
        behind, including the consumed number.

    Non-goals:
        - This model does NOT enforce balance at the ORM level; enforcement
          lives in JournalWriter.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("entry_number", name="uq_journal_entry_number"),
        UniqueConstraint("source_key", name="uq_journal_source_key"),
        Index("idx_journal_entry_date", "entry_date"),
        Index("idx_journal_status", "status"),
        Index("idx_journal_period", "period_id"),
        Index("idx_journal_source", "source_type", "source_id"),
    )

    entry_number: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    # Accounting date; drives period assignment
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Business date the entry was recorded
    posting_date: Mapped[date] = mapped_column(Date, nullable=False)

    period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounting_periods.id"),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    source_type: Mapped[SourceType] = mapped_column(String(20), nullable=False)

    source_id: Mapped[str | None] = mapped_column(String(200), nullable=True)

    source_key: Mapped[str | None] = mapped_column(String(240), nullable=True)

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(10),
        default=JournalEntryStatus.DRAFT.value,
        nullable=False,
    )

    total_debits: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    total_credits: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    reversed_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalLine.line_seq",
    )

    period: Mapped["AccountingPeriod"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<JournalEntry #{self.entry_number} status={self.status}>"

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    @property
    def is_reversed(self) -> bool:
        return self.status == JournalEntryStatus.REVERSED

    @property
    def is_balanced(self) -> bool:
        """Debits equal credits within one cent."""
        debits = sum((line.debit for line in self.lines), Decimal("0"))
        credits = sum((line.credit for line in self.lines), Decimal("0"))
        return abs(debits - credits) < Decimal("0.01")


class JournalLine(TrackedBase):
    """
    A debit and/or credit against one account within a journal entry.

    Usually exactly one of debit/credit is non-zero; both may be set to
    record a net adjustment, and every aggregate sums both columns.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        UniqueConstraint("journal_entry_id", "line_seq", name="uq_journal_line_seq"),
        CheckConstraint("debit >= 0", name="ck_journal_line_debit_nonneg"),
        CheckConstraint("credit >= 0", name="ck_journal_line_credit_nonneg"),
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    debit: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    credit: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    department_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    project_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    entry: Mapped["JournalEntry"] = relationship(back_populates="lines")

    account: Mapped["Account"] = relationship(back_populates="journal_lines", lazy="joined")

    def __repr__(self) -> str:
        return f"<JournalLine {self.account_id} Dr {self.debit} Cr {self.credit}>"
