"""
SQLAlchemy ORM persistence models for the auto-posting source records.

Responsibility
--------------
Persist the business records the auto-poster turns into journal entries:
invoices, invoice payments, time entries and subscription renewals.  The
records are owned by the billing and time-tracking side of the business;
this module only reads them.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``AutoPostService``.
Inherits from ``TrackedBase`` (kernel db layer).

Invariants enforced
-------------------
* All monetary fields use ``Decimal`` (Numeric(38,9)) -- NEVER float.
* Status fields stored as strings.
* ``InvoicePaymentModel`` belongs to exactly one ``InvoiceModel``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase


# ---------------------------------------------------------------------------
# InvoiceModel
# ---------------------------------------------------------------------------


class InvoiceModel(TrackedBase):
    """
    A customer invoice.

    Guarantees:
        - ``invoice_number`` is unique.
        - ``status`` is one of draft, sent, paid, partial, void.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoice_number"),
        Index("idx_invoice_status", "status"),
    )

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False, default="Unknown Customer")
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    total: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    project_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    payments: Mapped[list["InvoicePaymentModel"]] = relationship(
        "InvoicePaymentModel",
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoicePaymentModel.payment_date",
    )


# ---------------------------------------------------------------------------
# InvoicePaymentModel
# ---------------------------------------------------------------------------


class InvoicePaymentModel(TrackedBase):
    """A payment received against an invoice."""

    __tablename__ = "invoice_payments"

    __table_args__ = (
        Index("idx_invoice_payment_invoice", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    method: Mapped[str | None] = mapped_column(String(30), nullable=True)

    invoice: Mapped["InvoiceModel"] = relationship(
        "InvoiceModel",
        back_populates="payments",
        lazy="joined",
    )


# ---------------------------------------------------------------------------
# TimeEntryModel
# ---------------------------------------------------------------------------


class TimeEntryModel(TrackedBase):
    """
    Logged working time.

    ``hourly_rate`` overrides the batch rate for this entry when set.
    """

    __tablename__ = "time_entries"

    __table_args__ = (
        Index("idx_time_entry_work_date", "work_date"),
        Index("idx_time_entry_project", "project_id"),
    )

    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    billable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    project_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    project_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    user_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    hourly_rate: Mapped[Decimal | None] = mapped_column(nullable=True)


# ---------------------------------------------------------------------------
# RenewalModel
# ---------------------------------------------------------------------------


class RenewalModel(TrackedBase):
    """A subscription renewal billed up front for ``term_months``."""

    __tablename__ = "renewals"

    __table_args__ = (
        Index("idx_renewal_date", "renewal_date"),
    )

    renewal_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False, default="Unknown Customer")
    product_name: Mapped[str] = mapped_column(String(200), nullable=False, default="Subscription")
    term_months: Mapped[int] = mapped_column(Integer, nullable=False, default=12)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
