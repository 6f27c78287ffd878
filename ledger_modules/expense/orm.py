"""
SQLAlchemy ORM persistence models for the Expense Sub-ledger.

Responsibility
--------------
Persist expense documents and their lines.  Each expense carries links to
the journal entries its lifecycle produced: the AP liability posted on
approval, the cash payment, and the reversal written when an approved
expense is voided.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``ExpenseService``.
Inherits from ``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* ``expense_number`` is unique.
* All monetary fields use ``Decimal`` (Numeric(38,9)) -- NEVER float.
* ``total == subtotal + tax`` (maintained by ``ExpenseService``).
* Status stored as a string; transitions governed by ``EXPENSE_WORKFLOW``.

Audit relevance
---------------
* ``ExpenseModel`` -- who approved, paid and voided the document and when,
  plus the journal entries each step wrote.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase


# ---------------------------------------------------------------------------
# ExpenseModel
# ---------------------------------------------------------------------------


class ExpenseModel(TrackedBase):
    """
    An accounts-payable expense document.

    Maps to the ``Expense`` DTO in ``ledger_modules.expense.models``.

    Guarantees:
        - ``expense_number`` is unique across all expenses.
        - ``status`` follows the lifecycle:
          draft -> pending_approval -> approved -> paid, or -> void.
    """

    __tablename__ = "expenses"

    __table_args__ = (
        UniqueConstraint("expense_number", name="uq_expense_number"),
        Index("idx_expense_status", "status"),
        Index("idx_expense_vendor", "vendor_id"),
        Index("idx_expense_date", "expense_date"),
    )

    expense_number: Mapped[str] = mapped_column(String(50), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    vendor_id: Mapped[UUID | None]
    vendor_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    subtotal: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    tax: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft")
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    journal_entry_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=True,
    )
    payment_entry_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=True,
    )
    void_entry_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=True,
    )

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by_id: Mapped[UUID | None]
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    lines: Mapped[list["ExpenseLineModel"]] = relationship(
        "ExpenseLineModel",
        back_populates="expense",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ExpenseLineModel.line_number",
    )

    def to_dto(self):
        from ledger_modules.expense.models import Expense, ExpenseStatus

        return Expense(
            id=self.id,
            expense_number=self.expense_number,
            expense_date=self.expense_date,
            description=self.description,
            status=ExpenseStatus(self.status),
            subtotal=self.subtotal,
            tax=self.tax,
            total=self.total,
            vendor_id=self.vendor_id,
            vendor_name=self.vendor_name,
            due_date=self.due_date,
            category=self.category,
            payment_method=self.payment_method,
            reference_number=self.reference_number,
            notes=self.notes,
            journal_entry_id=self.journal_entry_id,
            payment_entry_id=self.payment_entry_id,
            void_entry_id=self.void_entry_id,
            submitted_at=self.submitted_at,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
            paid_at=self.paid_at,
            payment_date=self.payment_date,
            voided_at=self.voided_at,
            lines=tuple(line.to_dto() for line in self.lines),
        )

    def __repr__(self) -> str:
        return f"<ExpenseModel {self.expense_number} [{self.status}] {self.total}>"


# ---------------------------------------------------------------------------
# ExpenseLineModel
# ---------------------------------------------------------------------------


class ExpenseLineModel(TrackedBase):
    """
    A single line on an expense.

    Maps to the ``ExpenseLine`` DTO in ``ledger_modules.expense.models``.
    ``account_number`` is a snapshot of the account at the time the line
    was written.
    """

    __tablename__ = "expense_lines"

    __table_args__ = (
        UniqueConstraint("expense_id", "line_number", name="uq_expense_line_number"),
        Index("idx_expense_line_account", "account_id"),
    )

    expense_id: Mapped[UUID] = mapped_column(ForeignKey("expenses.id"), nullable=False)
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    account_id: Mapped[UUID] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    account_number: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    department_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    project_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Relationships
    expense: Mapped["ExpenseModel"] = relationship(
        "ExpenseModel",
        back_populates="lines",
    )

    def to_dto(self):
        from ledger_modules.expense.models import ExpenseLine

        return ExpenseLine(
            id=self.id,
            line_number=self.line_number,
            account_id=self.account_id,
            account_number=self.account_number,
            amount=self.amount,
            category=self.category,
            description=self.description,
            department_id=self.department_id,
            project_id=self.project_id,
        )

    def __repr__(self) -> str:
        return f"<ExpenseLineModel {self.line_number}: {self.account_number} {self.amount}>"
