"""
Module: ledger_kernel.models.accounting_period
Responsibility: ORM persistence for the accounting-period calendar -- controls
    which date ranges accept postings.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (fiscal_year, fiscal_month) is unique (uq_period_year_month).
    - start_date <= end_date (ck_period_dates).
    - Non-overlap between periods is enforced by PeriodService.
    - Only OPEN periods accept postings.

Failure modes:
    - IntegrityError on a duplicate (fiscal_year, fiscal_month).

Audit relevance:
    closed_at/closed_by_id and locked_at/locked_by_id record who froze a
    period and when.  LOCKED is terminal: a period whose statements have
    been externally audited never reopens.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class PeriodStatus(str, Enum):
    """Lifecycle status of an accounting period.

    OPEN <-> CLOSED, and OPEN/CLOSED -> LOCKED (terminal).
    """

    OPEN = "open"
    CLOSED = "closed"
    LOCKED = "locked"


class AccountingPeriod(TrackedBase):
    """
    One calendar month (or custom range) of the fiscal calendar.

    Guarantees:
        - contains_date() is inclusive at both ends.
        - accepts_postings is True only while OPEN.
    """

    __tablename__ = "accounting_periods"

    __table_args__ = (
        UniqueConstraint("fiscal_year", "fiscal_month", name="uq_period_year_month"),
        CheckConstraint("start_date <= end_date", name="ck_period_dates"),
        Index("idx_period_dates", "start_date", "end_date"),
        Index("idx_period_status", "status"),
    )

    name: Mapped[str] = mapped_column(String(50), nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)

    fiscal_quarter: Mapped[int] = mapped_column(Integer, nullable=False)

    fiscal_month: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[PeriodStatus] = mapped_column(
        String(10),
        default=PeriodStatus.OPEN.value,
        nullable=False,
    )

    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    locked_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<AccountingPeriod {self.name} [{self.status}]>"

    @property
    def is_open(self) -> bool:
        return self.status == PeriodStatus.OPEN

    @property
    def is_closed(self) -> bool:
        return self.status == PeriodStatus.CLOSED

    @property
    def is_locked(self) -> bool:
        return self.status == PeriodStatus.LOCKED

    @property
    def accepts_postings(self) -> bool:
        return self.is_open

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date
