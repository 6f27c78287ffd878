"""
Auto-Posting Module Service (``ledger_modules.autopost.service``).

Responsibility
--------------
Turns business records -- invoices, invoice payments, time entries and
subscription renewals -- into journal entries, recognizes deferred
subscription revenue period by period, and posts one-off invoice
adjustments and refunds.

Architecture position
---------------------
**Modules layer** -- thin glue over the kernel ``JournalWriter``.  Reads
the source records from ``ledger_modules.autopost.orm``; never modifies
them.

Invariants enforced
-------------------
* Each public method owns the transaction boundary (``commit`` on
  success, ``rollback`` and re-raise on an unexpected exception).
* Each record posts inside its own SAVEPOINT.  A ``LedgerError`` on one
  record rolls back that record only; the batch continues.
* A source record is posted at most once: the journal's unique
  ``(source_type, source_id)`` key makes re-runs count the record as
  skipped instead of posting it again.

Failure modes
-------------
* ``LedgerError`` for a single record (missing account, closed period,
  ...) -> recorded in ``AutoPostResult.errors``, counted as skipped.
* Storage errors (``sqlalchemy.exc.*``) -> session rolled back, exception
  re-raised.  The batch is abandoned.

Audit relevance
---------------
Every batch logs its counts and ``duration_ms``; every failed record
logs its source id and error code.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO, round_money, to_money
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.exceptions import (
    InvalidInputError,
    LedgerError,
    PeriodNotFoundError,
    SourceRecordNotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.accounting_period import AccountingPeriod
from ledger_kernel.models.journal import SourceType
from ledger_kernel.services.journal_writer import JournalWriter, JournalWriteResult
from ledger_modules.autopost.config import AutoPostConfig
from ledger_modules.autopost.models import (
    POSTABLE_INVOICE_STATUSES,
    AutoPostError,
    AutoPostResult,
)
from ledger_modules.autopost.orm import (
    InvoiceModel,
    InvoicePaymentModel,
    RenewalModel,
    TimeEntryModel,
)

logger = get_logger("modules.autopost.service")

MINUTES_PER_HOUR = Decimal("60")


class _BatchTally:
    """Mutable counters for a batch in progress."""

    def __init__(self) -> None:
        self.posted = 0
        self.skipped = 0
        self.errors: list[AutoPostError] = []

    def fail(self, source_id: str, code: str, message: str) -> None:
        self.skipped += 1
        self.errors.append(AutoPostError(source_id=source_id, code=code, message=message))

    def freeze(self) -> AutoPostResult:
        return AutoPostResult(
            posted=self.posted,
            skipped=self.skipped,
            errors=tuple(self.errors),
        )


def revenue_recognition_source_id(renewal_id: UUID | str, period_name: str) -> str:
    """Source id of the recognition entry for one renewal in one period."""
    return f"{renewal_id}_rev_{period_name.replace(' ', '_')}"


class AutoPostService:
    """
    Posts journal entries for business records.

    Contract
    --------
    * Batch methods return ``AutoPostResult``; a batch never raises for a
      bad record, only for storage failures.
    * ``posted + skipped`` equals the number of records the batch looked at.

    Non-goals
    ---------
    * Does NOT create or edit invoices, payments, time entries or renewals.
    * Does NOT split one invoice into per-line revenue entries.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: AutoPostConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or AutoPostConfig.with_defaults()
        self._writer = JournalWriter(
            session, self._clock, entry_number_start=self._config.entry_number_start
        )

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _post_one(
        self,
        tally: _BatchTally,
        source_type: SourceType,
        source_id: str,
        entry_date: date,
        description: str,
        lines: list[LineSpec],
        actor_id: UUID,
    ) -> None:
        with LogContext.bind(source_type=source_type.value, source_id=source_id):
            savepoint = self._session.begin_nested()
            try:
                result = self._writer.post_entry(
                    entry_date=entry_date,
                    description=description,
                    lines=lines,
                    actor_id=actor_id,
                    source_type=source_type,
                    source_id=source_id,
                )
            except LedgerError as exc:
                savepoint.rollback()
                logger.warning(
                    "autopost_record_failed",
                    extra={"error_code": exc.code, "error": exc.message},
                )
                tally.fail(source_id, exc.code, exc.message)
                return
            savepoint.commit()

        if result.is_new:
            tally.posted += 1
        else:
            tally.skipped += 1

    @staticmethod
    def _skip_empty(tally: _BatchTally, source_type: SourceType, source_id: str, amount: Decimal) -> bool:
        if amount > ZERO:
            return False
        logger.info(
            "autopost_record_skipped",
            extra={
                "source_type": source_type.value,
                "source_id": source_id,
                "amount": str(amount),
            },
        )
        tally.skipped += 1
        return True

    def _run_batch(
        self,
        name: str,
        records: Iterable,
        post: Callable[[_BatchTally, object], None],
    ) -> AutoPostResult:
        t0 = time.monotonic()
        tally = _BatchTally()
        logger.info("autopost_batch_started", extra={"batch": name})
        try:
            for record in records:
                post(tally, record)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        result = tally.freeze()
        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info(
            "autopost_batch_completed",
            extra={
                "batch": name,
                "posted": result.posted,
                "skipped": result.skipped,
                "failed": result.failed,
                "duration_ms": duration_ms,
            },
        )
        return result

    # =========================================================================
    # Invoices
    # =========================================================================

    def _post_invoice(self, tally: _BatchTally, invoice: InvoiceModel, actor_id: UUID) -> None:
        source_id = str(invoice.id)
        amount = to_money(invoice.total)
        if self._skip_empty(tally, SourceType.INVOICE, source_id, amount):
            return
        accounts = self._config.accounts
        self._post_one(
            tally,
            SourceType.INVOICE,
            source_id,
            invoice.issue_date,
            f"Invoice #{invoice.invoice_number} - {invoice.customer_name}",
            [
                LineSpec.dr(
                    accounts.accounts_receivable, amount,
                    description=f"AR - Invoice #{invoice.invoice_number}",
                ),
                LineSpec.cr(
                    accounts.service_revenue, amount,
                    description=f"Service revenue - {invoice.customer_name}",
                    project_id=invoice.project_id,
                ),
            ],
            actor_id,
        )

    def post_invoices(self, actor_id: UUID) -> AutoPostResult:
        """
        Post every non-void invoice: DR Accounts Receivable / CR Service
        Revenue for the invoice total.
        """
        invoices = self._session.execute(
            select(InvoiceModel)
            .where(InvoiceModel.status.in_(POSTABLE_INVOICE_STATUSES))
            .order_by(InvoiceModel.issue_date, InvoiceModel.invoice_number)
        ).scalars().all()
        return self._run_batch(
            "invoices",
            invoices,
            lambda tally, invoice: self._post_invoice(tally, invoice, actor_id),
        )

    # =========================================================================
    # Invoice adjustments and refunds
    # =========================================================================

    def _load_invoice(self, invoice_id: UUID) -> InvoiceModel:
        invoice = self._session.get(InvoiceModel, invoice_id)
        if invoice is None:
            raise SourceRecordNotFoundError(SourceType.INVOICE.value, str(invoice_id))
        return invoice

    def post_invoice_adjustment(
        self,
        invoice_id: UUID,
        amount: Decimal,
        adjustment_date: date,
        actor_id: UUID,
        adjustment_id: str | None = None,
    ) -> JournalWriteResult | None:
        """
        Post a change to an invoice total.

        A positive ``amount`` raises the invoice: DR Accounts Receivable /
        CR Service Revenue.  A negative one reverses the direction.  A zero
        amount posts nothing and returns None.

        ``adjustment_id`` keys idempotency; it defaults to the adjustment
        date, so one adjustment per invoice per day unless callers pass
        their own id.

        Raises:
            SourceRecordNotFoundError: Unknown invoice.
            PeriodNotFoundError, PeriodClosedError: ``adjustment_date`` not
                postable.
        """
        amount = to_money(amount)
        if amount == ZERO:
            logger.info("invoice_adjustment_skipped", extra={"invoice_id": str(invoice_id)})
            return None

        try:
            invoice = self._load_invoice(invoice_id)
            accounts = self._config.accounts
            magnitude = abs(amount)
            kind = "increase" if amount > ZERO else "decrease"
            memo = f"Invoice #{invoice.invoice_number} adjustment"
            receivable = (accounts.accounts_receivable, magnitude)
            revenue = (accounts.service_revenue, magnitude)
            if amount > ZERO:
                lines = [
                    LineSpec.dr(*receivable, description=memo),
                    LineSpec.cr(*revenue, description=memo, project_id=invoice.project_id),
                ]
            else:
                lines = [
                    LineSpec.dr(*revenue, description=memo, project_id=invoice.project_id),
                    LineSpec.cr(*receivable, description=memo),
                ]
            result = self._writer.post_entry(
                entry_date=adjustment_date,
                description=f"Invoice #{invoice.invoice_number} adjustment ({kind}) - {invoice.customer_name}",
                lines=lines,
                actor_id=actor_id,
                source_type=SourceType.ADJUSTMENT,
                source_id=f"{invoice.id}_adj_{adjustment_id or adjustment_date.isoformat()}",
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "invoice_adjustment_posted",
            extra={
                "invoice_id": str(invoice_id),
                "amount": str(amount),
                "entry_number": result.entry.entry_number,
                "is_new": result.is_new,
            },
        )
        return result

    def post_refund(
        self,
        invoice_id: UUID,
        refund_id: str,
        amount: Decimal,
        refund_date: date,
        actor_id: UUID,
        reason: str | None = None,
    ) -> JournalWriteResult:
        """
        Post a refund against an invoice: DR Service Revenue / CR Cash.

        Refunds are keyed by ``refund_id``; posting the same refund twice
        returns the existing entry.

        Raises:
            InvalidInputError: Non-positive amount or blank ``refund_id``.
            SourceRecordNotFoundError: Unknown invoice.
            PeriodNotFoundError, PeriodClosedError: ``refund_date`` not
                postable.
        """
        amount = to_money(amount)
        if amount <= ZERO:
            raise InvalidInputError("amount", f"refund amount must be positive, got {amount}")
        if not refund_id or not str(refund_id).strip():
            raise InvalidInputError("refund_id", "is required")

        try:
            invoice = self._load_invoice(invoice_id)
            accounts = self._config.accounts
            memo = f"Refund for Invoice #{invoice.invoice_number}"
            note = f" - {reason}" if reason else ""
            result = self._writer.post_entry(
                entry_date=refund_date,
                description=f"{memo} - {invoice.customer_name}{note}",
                lines=[
                    LineSpec.dr(
                        accounts.service_revenue, amount,
                        description=memo, project_id=invoice.project_id,
                    ),
                    LineSpec.cr(accounts.cash, amount, description=memo),
                ],
                actor_id=actor_id,
                source_type=SourceType.PAYMENT,
                source_id=f"refund_{str(refund_id).strip()}",
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "refund_posted",
            extra={
                "invoice_id": str(invoice_id),
                "refund_id": str(refund_id),
                "amount": str(amount),
                "entry_number": result.entry.entry_number,
                "is_new": result.is_new,
            },
        )
        return result

    # =========================================================================
    # Payments
    # =========================================================================

    def _post_payment(self, tally: _BatchTally, payment: InvoicePaymentModel, actor_id: UUID) -> None:
        source_id = str(payment.id)
        amount = to_money(payment.amount)
        if self._skip_empty(tally, SourceType.PAYMENT, source_id, amount):
            return
        invoice = payment.invoice
        description = f"Payment for Invoice #{invoice.invoice_number} - {invoice.customer_name}"
        if payment.method:
            description = f"{description} ({payment.method})"
        accounts = self._config.accounts
        self._post_one(
            tally,
            SourceType.PAYMENT,
            source_id,
            payment.payment_date,
            description,
            [
                LineSpec.dr(
                    accounts.cash, amount,
                    description=f"Cash received - Invoice #{invoice.invoice_number}",
                ),
                LineSpec.cr(
                    accounts.accounts_receivable, amount,
                    description=f"AR cleared - Invoice #{invoice.invoice_number}",
                ),
            ],
            actor_id,
        )

    def post_payments(self, actor_id: UUID) -> AutoPostResult:
        """Post every invoice payment: DR Cash / CR Accounts Receivable."""
        payments = self._session.execute(
            select(InvoicePaymentModel)
            .order_by(InvoicePaymentModel.payment_date, InvoicePaymentModel.created_at)
        ).scalars().all()
        return self._run_batch(
            "payments",
            payments,
            lambda tally, payment: self._post_payment(tally, payment, actor_id),
        )

    # =========================================================================
    # Time entries
    # =========================================================================

    def time_entry_amount(self, entry: TimeEntryModel, hourly_rate: Decimal | None = None) -> Decimal:
        """
        Cost of a time entry, rounded to cents.

        The entry's own rate wins, then ``hourly_rate``, then the
        configured default.
        """
        if entry.hourly_rate is not None:
            rate = to_money(entry.hourly_rate)
        elif hourly_rate is not None:
            rate = to_money(hourly_rate)
        else:
            rate = self._config.default_hourly_rate
        hours = Decimal(entry.minutes or 0) / MINUTES_PER_HOUR
        return round_money(hours * rate)

    def _post_time_entry(
        self,
        tally: _BatchTally,
        entry: TimeEntryModel,
        actor_id: UUID,
        hourly_rate: Decimal | None,
    ) -> None:
        source_id = str(entry.id)
        amount = self.time_entry_amount(entry, hourly_rate)
        if self._skip_empty(tally, SourceType.TIME_ENTRY, source_id, amount):
            return

        accounts = self._config.accounts
        hours = Decimal(entry.minutes) / MINUTES_PER_HOUR
        kind = "billable" if entry.billable else "non-billable"
        who = entry.user_name or "Unknown"
        project = entry.project_name or entry.project_id or "no project"
        expense_account = accounts.direct_labor if entry.billable else accounts.non_billable_labor

        self._post_one(
            tally,
            SourceType.TIME_ENTRY,
            source_id,
            entry.work_date,
            f"{who} - {hours:.2f}h {kind} time on {project}",
            [
                LineSpec.dr(
                    expense_account, amount,
                    description=entry.description or f"{kind.capitalize()} labor",
                    project_id=entry.project_id,
                ),
                LineSpec.cr(
                    accounts.accrued_wages, amount,
                    description=f"Accrued wages - {who}",
                    project_id=entry.project_id,
                ),
            ],
            actor_id,
        )

    def post_time_entries(self, actor_id: UUID, hourly_rate: Decimal | None = None) -> AutoPostResult:
        """
        Post labor cost for time entries: DR Direct Labor (billable) or
        Non-Billable Labor / CR Accrued Wages.
        """
        if hourly_rate is not None and to_money(hourly_rate) <= ZERO:
            raise InvalidInputError("hourly_rate", f"must be positive, got {hourly_rate}")
        entries = self._session.execute(
            select(TimeEntryModel)
            .order_by(TimeEntryModel.work_date, TimeEntryModel.created_at)
        ).scalars().all()
        return self._run_batch(
            "time_entries",
            entries,
            lambda tally, entry: self._post_time_entry(tally, entry, actor_id, hourly_rate),
        )

    # =========================================================================
    # Renewals
    # =========================================================================

    def _post_renewal(self, tally: _BatchTally, renewal: RenewalModel, actor_id: UUID) -> None:
        source_id = str(renewal.id)
        amount = to_money(renewal.amount)
        if self._skip_empty(tally, SourceType.RENEWAL, source_id, amount):
            return
        accounts = self._config.accounts
        self._post_one(
            tally,
            SourceType.RENEWAL,
            source_id,
            renewal.renewal_date,
            renewal.description or f"Renewal - {renewal.product_name} for {renewal.customer_name}",
            [
                LineSpec.dr(
                    accounts.accounts_receivable, amount,
                    description=f"AR - {renewal.customer_name}",
                ),
                LineSpec.cr(
                    accounts.deferred_revenue, amount,
                    description=f"Deferred revenue - {renewal.product_name}",
                ),
            ],
            actor_id,
        )

    def post_renewals(self, actor_id: UUID) -> AutoPostResult:
        """
        Post subscription renewals: DR Accounts Receivable / CR Deferred
        Revenue.  Revenue is earned later through
        ``recognize_renewal_revenue``.
        """
        renewals = self._session.execute(
            select(RenewalModel)
            .order_by(RenewalModel.renewal_date, RenewalModel.created_at)
        ).scalars().all()
        return self._run_batch(
            "renewals",
            renewals,
            lambda tally, renewal: self._post_renewal(tally, renewal, actor_id),
        )

    def recognize_renewal_revenue(
        self,
        renewal_id: UUID,
        period_id: UUID,
        actor_id: UUID,
        amount: Decimal | None = None,
    ) -> JournalWriteResult:
        """
        Move one period's share of a renewal from Deferred Revenue to
        Subscription Revenue, dated the last day of the period.

        ``amount`` defaults to the renewal amount spread evenly over its
        term.  Calling twice for the same renewal and period returns the
        existing entry.

        Raises:
            SourceRecordNotFoundError: Unknown renewal.
            PeriodNotFoundError: Unknown period.
            PeriodClosedError: The period is no longer open.
            InvalidInputError: Non-positive amount.
        """
        try:
            renewal = self._session.get(RenewalModel, renewal_id)
            if renewal is None:
                raise SourceRecordNotFoundError(SourceType.RENEWAL.value, str(renewal_id))
            period = self._session.get(AccountingPeriod, period_id)
            if period is None:
                raise PeriodNotFoundError(str(period_id))

            if amount is None:
                term = renewal.term_months or 1
                amount = round_money(to_money(renewal.amount) / Decimal(term))
            amount = to_money(amount)
            if amount <= ZERO:
                raise InvalidInputError("amount", f"recognition amount must be positive, got {amount}")

            accounts = self._config.accounts
            result = self._writer.post_entry(
                entry_date=period.end_date,
                description=(
                    f"Revenue recognition - {renewal.product_name} for "
                    f"{renewal.customer_name} ({period.name})"
                ),
                lines=[
                    LineSpec.dr(
                        accounts.deferred_revenue, amount,
                        description=f"Deferred revenue released - {period.name}",
                    ),
                    LineSpec.cr(
                        accounts.subscription_revenue, amount,
                        description=f"Subscription revenue - {renewal.product_name}",
                    ),
                ],
                actor_id=actor_id,
                source_type=SourceType.RENEWAL,
                source_id=revenue_recognition_source_id(renewal.id, period.name),
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "renewal_revenue_recognized",
            extra={
                "renewal_id": str(renewal_id),
                "period_name": period.name,
                "amount": str(amount),
                "entry_number": result.entry.entry_number,
                "is_new": result.is_new,
            },
        )
        return result

    # =========================================================================
    # Everything
    # =========================================================================

    def post_all(self, actor_id: UUID, hourly_rate: Decimal | None = None) -> dict[str, AutoPostResult]:
        """Run every batch in order; each batch commits on its own."""
        return {
            "invoices": self.post_invoices(actor_id),
            "payments": self.post_payments(actor_id),
            "time_entries": self.post_time_entries(actor_id, hourly_rate),
            "renewals": self.post_renewals(actor_id),
        }
