"""
Expense Sub-ledger Service (``ledger_modules.expense.service``).

Responsibility
--------------
Manages expense documents through their lifecycle -- create, edit,
submit, approve, pay, void -- and writes the journal entries that the
lifecycle implies:

* approve -- AP liability: DR each line's expense account (and tax),
  CR Accounts Payable.
* pay     -- DR Accounts Payable, CR Cash.
* void    -- reversal of the liability entry, when one was posted.

Architecture position
---------------------
**Modules layer** -- thin glue.  ``ExpenseService`` is the sole public
entry point for expense operations.  It composes the kernel
``JournalWriter``, ``ReversalService``, ``AccountService`` and
``SequenceService``.

Invariants enforced
-------------------
* Each mutating method owns the transaction boundary (``commit`` on
  success, ``rollback`` and re-raise on any exception).  The document
  change and its journal entry commit together or not at all.
* Status changes go through ``EXPENSE_WORKFLOW``.
* A document posts at most one liability and one payment entry; the
  journal source keys ``{expense_id}:liability`` and
  ``{expense_id}:payment`` back this at the storage level.
* Double-entry balance enforced downstream by ``JournalWriter``.

Failure modes
-------------
* ``ExpenseNotFoundError`` -- unknown expense id.
* ``ExpenseValidationError`` -- malformed document (no lines, negative
  amounts, unknown category, nothing to post).
* ``InvalidAccountError`` / ``InactiveAccountError`` -- line account.
* ``InvalidStateTransitionError`` -- action not allowed from the status.
* ``PeriodClosedError`` / ``PeriodNotFoundError`` -- posting date.

Audit relevance
---------------
Structured log events are emitted for every state change, carrying the
expense number, amounts and the journal entry written.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO, round_money, to_money
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.exceptions import (
    ExpenseNotFoundError,
    ExpenseValidationError,
    InactiveAccountError,
    InvalidInputError,
    InvalidStateTransitionError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, SourceType
from ledger_kernel.selectors.journal_selector import clamp_limit
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.journal_writer import JournalWriter
from ledger_kernel.services.reversal_service import ReversalService
from ledger_kernel.services.sequence_service import SequenceService
from ledger_modules.expense.config import ExpenseConfig
from ledger_modules.expense.models import (
    EXPENSE_CATEGORIES,
    Expense,
    ExpenseCategory,
    ExpenseLineInput,
    ExpensePage,
    ExpenseStatus,
    category_account,
)
from ledger_modules.expense.orm import ExpenseLineModel, ExpenseModel
from ledger_modules.expense.workflows import (
    EDITABLE_STATUSES,
    EXPENSE_WORKFLOW,
    UNPOSTED_STATUSES,
)

logger = get_logger("modules.expense.service")

_UPDATABLE_FIELDS = frozenset({
    "description",
    "vendor_id",
    "vendor_name",
    "expense_date",
    "due_date",
    "category",
    "payment_method",
    "reference_number",
    "notes",
    "lines",
    "tax",
})

# Changing these after approval would leave the liability entry stale.
_POSTING_FIELDS = frozenset({"expense_date", "lines", "tax"})


def liability_source_id(expense_id: UUID) -> str:
    return f"{expense_id}:liability"


def payment_source_id(expense_id: UUID) -> str:
    return f"{expense_id}:payment"


class ExpenseService:
    """
    Orchestrates expense documents and their journal postings.

    Contract
    --------
    * Every public method returns the ``Expense`` DTO (or a page of them).
    * ``approve`` on an approved expense and ``pay`` on a paid expense
      return the document unchanged without posting again.

    Guarantees
    ----------
    * Session is committed only when the whole operation succeeded.
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT implement multi-level approval routing.
    * Does NOT store receipts or attachments.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ExpenseConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ExpenseConfig.with_defaults()
        self._writer = JournalWriter(
            session, self._clock, entry_number_start=self._config.entry_number_start
        )
        self._reversals = ReversalService(session, self._clock, journal_writer=self._writer)
        self._accounts = AccountService(session)
        self._sequence = SequenceService(session)

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _load(self, expense_id: UUID, for_update: bool = False) -> ExpenseModel:
        query = select(ExpenseModel).where(ExpenseModel.id == expense_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        expense = self._session.execute(query).scalar_one_or_none()
        if expense is None:
            raise ExpenseNotFoundError(str(expense_id))
        return expense

    @staticmethod
    def _validate_category(category: str | None) -> None:
        if category is not None and category_account(category) is None:
            raise ExpenseValidationError(f"unknown category {category!r}")

    @staticmethod
    def _validate_tax(tax) -> Decimal:
        tax = to_money(tax if tax is not None else ZERO)
        if tax < ZERO:
            raise ExpenseValidationError(f"tax cannot be negative, got {tax}")
        return tax

    def _build_lines(
        self,
        lines: Sequence[ExpenseLineInput],
        expense_category: str | None,
        actor_id: UUID,
    ) -> list[ExpenseLineModel]:
        """
        Validate requested lines and resolve each one's account.

        A line without an explicit account takes its own category's
        account, then the document category's, then the default account.
        """
        if not lines:
            raise ExpenseValidationError("an expense needs at least one line")

        built = []
        for number, line in enumerate(lines, start=1):
            if line.amount < ZERO:
                raise ExpenseValidationError(
                    f"line {number} amount cannot be negative, got {line.amount}"
                )
            account_ref = (
                line.account
                or category_account(line.category)
                or category_account(expense_category)
                or self._config.default_expense_account
            )
            account = self._accounts.resolve(account_ref)
            if not account.is_active:
                raise InactiveAccountError(account.account_number)
            built.append(
                ExpenseLineModel(
                    line_number=number,
                    account_id=account.id,
                    account_number=account.account_number,
                    category=line.category,
                    amount=round_money(line.amount),
                    description=line.description,
                    department_id=line.department_id,
                    project_id=line.project_id,
                    created_by_id=actor_id,
                )
            )
        return built

    @staticmethod
    def _apply_totals(expense: ExpenseModel) -> None:
        subtotal = sum((to_money(line.amount) for line in expense.lines), ZERO)
        expense.subtotal = round_money(subtotal)
        expense.total = round_money(subtotal + to_money(expense.tax))

    @staticmethod
    def _require_postable(expense: ExpenseModel) -> None:
        if not expense.lines or to_money(expense.total) <= ZERO:
            raise ExpenseValidationError(
                f"expense {expense.expense_number} has nothing to post"
            )

    def _counterparty(self, expense: ExpenseModel) -> str:
        return expense.vendor_name or expense.description

    # =========================================================================
    # Create / update
    # =========================================================================

    def create_expense(
        self,
        expense_date: date,
        description: str,
        lines: Sequence[ExpenseLineInput],
        actor_id: UUID,
        vendor_id: UUID | None = None,
        vendor_name: str | None = None,
        due_date: date | None = None,
        category: str | None = None,
        tax: Decimal = ZERO,
        payment_method: str | None = None,
        reference_number: str | None = None,
        notes: str | None = None,
    ) -> Expense:
        """
        Create a draft expense.

        Raises:
            ExpenseValidationError: Empty description, no lines, negative
                amounts or tax, unknown category.
            InvalidAccountError: A line account does not exist.
            InactiveAccountError: A line account is deactivated.
        """
        try:
            if not description or not description.strip():
                raise ExpenseValidationError("description cannot be empty")
            self._validate_category(category)
            tax = self._validate_tax(tax)
            built = self._build_lines(lines, category, actor_id)

            number = self._sequence.next_value(
                SequenceService.EXPENSE, start_at=self._config.number_start
            )
            expense = ExpenseModel(
                expense_number=self._config.format_number(number),
                expense_date=expense_date,
                due_date=due_date,
                vendor_id=vendor_id,
                vendor_name=vendor_name,
                description=description.strip(),
                category=category,
                tax=round_money(tax),
                status=ExpenseStatus.DRAFT.value,
                payment_method=payment_method,
                reference_number=reference_number,
                notes=notes,
                created_by_id=actor_id,
            )
            expense.lines.extend(built)
            self._apply_totals(expense)
            self._session.add(expense)
            self._session.flush()

            logger.info(
                "expense_created",
                extra={
                    "expense_id": str(expense.id),
                    "expense_number": expense.expense_number,
                    "line_count": len(built),
                    "total": str(expense.total),
                },
            )
            dto = expense.to_dto()
            self._session.commit()
            return dto
        except Exception:
            self._session.rollback()
            raise

    def update_expense(self, expense_id: UUID, actor_id: UUID, **changes) -> Expense:
        """
        Apply a partial update.

        Draft and pending documents accept any change; an approved
        document accepts only changes that leave its liability entry
        valid.  ``lines`` replaces every line.

        Raises:
            ExpenseNotFoundError: Unknown expense.
            InvalidInputError: Unknown field name.
            InvalidStateTransitionError: Document is paid or void, or the
                change touches amounts of an approved document.
            ExpenseValidationError: Invalid replacement values.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise InvalidInputError(", ".join(sorted(unknown)), "field cannot be updated")

        try:
            expense = self._load(expense_id, for_update=True)
            if expense.status not in EDITABLE_STATUSES:
                raise InvalidStateTransitionError("expense", expense.status, "update")
            if expense.status not in UNPOSTED_STATUSES and _POSTING_FIELDS & set(changes):
                raise InvalidStateTransitionError("expense", expense.status, "update_amounts")

            if "description" in changes:
                description = changes["description"]
                if not description or not description.strip():
                    raise ExpenseValidationError("description cannot be empty")
                expense.description = description.strip()
            if "category" in changes:
                self._validate_category(changes["category"])
                expense.category = changes["category"]
            if "tax" in changes:
                expense.tax = round_money(self._validate_tax(changes["tax"]))
            if "lines" in changes:
                built = self._build_lines(changes["lines"], expense.category, actor_id)
                expense.lines.clear()
                self._session.flush()
                expense.lines.extend(built)
            for simple in (
                "vendor_id", "vendor_name", "expense_date", "due_date",
                "payment_method", "reference_number", "notes",
            ):
                if simple in changes:
                    setattr(expense, simple, changes[simple])

            self._apply_totals(expense)
            expense.updated_by_id = actor_id
            self._session.flush()

            logger.info(
                "expense_updated",
                extra={
                    "expense_number": expense.expense_number,
                    "fields": sorted(changes),
                    "total": str(expense.total),
                },
            )
            dto = expense.to_dto()
            self._session.commit()
            return dto
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def submit(self, expense_id: UUID, actor_id: UUID) -> Expense:
        """Send a draft for approval (draft -> pending_approval)."""
        try:
            expense = self._load(expense_id, for_update=True)
            transition = EXPENSE_WORKFLOW.require_transition(expense.status, "submit")
            self._require_postable(expense)

            expense.status = transition.to_state
            expense.submitted_at = self._clock.now()
            expense.updated_by_id = actor_id
            self._session.flush()

            logger.info(
                "expense_submitted",
                extra={"expense_number": expense.expense_number, "total": str(expense.total)},
            )
            dto = expense.to_dto()
            self._session.commit()
            return dto
        except Exception:
            self._session.rollback()
            raise

    def approve(self, expense_id: UUID, actor_id: UUID) -> Expense:
        """
        Approve the expense and post its AP liability.

        Posts DR each line's account (plus DR the tax account when tax is
        non-zero) / CR Accounts Payable, dated ``expense_date``.

        Raises:
            InvalidStateTransitionError: Paid or void.
            ExpenseValidationError: Zero total.
            PeriodClosedError: ``expense_date`` is in a closed period.
        """
        t0 = time.monotonic()
        try:
            expense = self._load(expense_id, for_update=True)
            if expense.status == ExpenseStatus.APPROVED and expense.journal_entry_id is not None:
                logger.info(
                    "expense_approve_idempotent",
                    extra={"expense_number": expense.expense_number},
                )
                return expense.to_dto()

            transition = EXPENSE_WORKFLOW.require_transition(expense.status, "approve")
            self._require_postable(expense)

            lines = [
                LineSpec.dr(
                    line.account_id,
                    line.amount,
                    description=line.description or line.category or expense.description,
                    department_id=line.department_id,
                    project_id=line.project_id,
                )
                for line in expense.lines
            ]
            if to_money(expense.tax) > ZERO:
                lines.append(
                    LineSpec.dr(
                        self._config.tax,
                        expense.tax,
                        description=f"Tax - {expense.expense_number}",
                    )
                )
            lines.append(
                LineSpec.cr(
                    self._config.accounts_payable,
                    expense.total,
                    description=f"AP - {self._counterparty(expense)}",
                )
            )

            with LogContext.bind(source_type=SourceType.EXPENSE.value, source_id=str(expense.id)):
                result = self._writer.post_entry(
                    entry_date=expense.expense_date,
                    description=f"Expense {expense.expense_number} - {self._counterparty(expense)}",
                    lines=lines,
                    actor_id=actor_id,
                    source_type=SourceType.EXPENSE,
                    source_id=liability_source_id(expense.id),
                )

            expense.journal_entry_id = result.entry_id
            expense.status = transition.to_state
            expense.approved_by_id = actor_id
            expense.approved_at = self._clock.now()
            expense.updated_by_id = actor_id
            self._session.flush()

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info(
                "expense_approved",
                extra={
                    "expense_number": expense.expense_number,
                    "total": str(expense.total),
                    "entry_number": result.entry.entry_number,
                    "duration_ms": duration_ms,
                },
            )
            dto = expense.to_dto()
            self._session.commit()
            return dto
        except Exception:
            self._session.rollback()
            raise

    def pay(
        self,
        expense_id: UUID,
        actor_id: UUID,
        payment_method: str | None = None,
        payment_date: date | None = None,
    ) -> Expense:
        """
        Record payment of an approved expense: DR Accounts Payable /
        CR Cash, dated ``payment_date`` (default today).

        Raises:
            InvalidStateTransitionError: Not approved.
            PeriodClosedError: ``payment_date`` is in a closed period.
        """
        t0 = time.monotonic()
        try:
            expense = self._load(expense_id, for_update=True)
            if expense.status == ExpenseStatus.PAID:
                logger.info(
                    "expense_pay_idempotent",
                    extra={"expense_number": expense.expense_number},
                )
                return expense.to_dto()

            transition = EXPENSE_WORKFLOW.require_transition(expense.status, "pay")
            if expense.journal_entry_id is None:
                raise InvalidStateTransitionError("expense", expense.status, "pay")

            payment_date = payment_date or self._clock.today()
            counterparty = self._counterparty(expense)
            with LogContext.bind(source_type=SourceType.EXPENSE.value, source_id=str(expense.id)):
                result = self._writer.post_entry(
                    entry_date=payment_date,
                    description=f"Payment of expense {expense.expense_number} - {counterparty}",
                    lines=[
                        LineSpec.dr(
                            self._config.accounts_payable,
                            expense.total,
                            description=f"AP cleared - {counterparty}",
                        ),
                        LineSpec.cr(
                            self._config.cash,
                            expense.total,
                            description=f"Paid {expense.expense_number}",
                        ),
                    ],
                    actor_id=actor_id,
                    source_type=SourceType.EXPENSE,
                    source_id=payment_source_id(expense.id),
                )

            expense.payment_entry_id = result.entry_id
            expense.status = transition.to_state
            expense.paid_at = self._clock.now()
            expense.payment_date = payment_date
            if payment_method:
                expense.payment_method = payment_method
            expense.updated_by_id = actor_id
            self._session.flush()

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info(
                "expense_paid",
                extra={
                    "expense_number": expense.expense_number,
                    "total": str(expense.total),
                    "entry_number": result.entry.entry_number,
                    "duration_ms": duration_ms,
                },
            )
            dto = expense.to_dto()
            self._session.commit()
            return dto
        except Exception:
            self._session.rollback()
            raise

    def void(self, expense_id: UUID, actor_id: UUID) -> Expense:
        """
        Void an unpaid expense.

        An approved expense has its liability entry reversed, dated today
        or the expense date, whichever is later.  Voiding a void expense
        returns it unchanged.

        Raises:
            InvalidStateTransitionError: Expense is paid.
            PeriodClosedError: The reversal date is in a closed period.
        """
        try:
            expense = self._load(expense_id, for_update=True)
            if expense.status == ExpenseStatus.VOID:
                return expense.to_dto()

            transition = EXPENSE_WORKFLOW.require_transition(expense.status, "void")

            if expense.journal_entry_id is not None:
                liability = self._session.get(JournalEntry, expense.journal_entry_id)
                if liability.status == JournalEntryStatus.REVERSED:
                    expense.void_entry_id = liability.reversed_by_id
                else:
                    reversal = self._reversals.reverse_entry(
                        expense.journal_entry_id,
                        actor_id,
                        reversal_date=max(self._clock.today(), expense.expense_date),
                    )
                    expense.void_entry_id = reversal.reversal_entry_id

            expense.status = transition.to_state
            expense.voided_at = self._clock.now()
            expense.updated_by_id = actor_id
            self._session.flush()

            logger.info(
                "expense_voided",
                extra={
                    "expense_number": expense.expense_number,
                    "reversed_liability": expense.void_entry_id is not None,
                },
            )
            dto = expense.to_dto()
            self._session.commit()
            return dto
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get_expense(self, expense_id: UUID) -> Expense:
        return self._load(expense_id).to_dto()

    def list_expenses(
        self,
        status: ExpenseStatus | str | None = None,
        vendor_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> ExpensePage:
        """Expenses newest first, filtered and paged."""
        limit = clamp_limit(limit, self._config.default_page_size, self._config.max_page_size)
        offset = max(0, int(offset))

        filters = []
        if status is not None:
            filters.append(ExpenseModel.status == ExpenseStatus(status).value)
        if vendor_id is not None:
            filters.append(ExpenseModel.vendor_id == vendor_id)
        if start_date is not None:
            filters.append(ExpenseModel.expense_date >= start_date)
        if end_date is not None:
            filters.append(ExpenseModel.expense_date <= end_date)

        total = self._session.execute(
            select(func.count(ExpenseModel.id)).where(*filters)
        ).scalar_one()
        rows = self._session.execute(
            select(ExpenseModel)
            .where(*filters)
            .order_by(ExpenseModel.expense_date.desc(), ExpenseModel.created_at.desc())
            .limit(limit)
            .offset(offset)
        ).scalars().all()

        return ExpensePage(
            expenses=tuple(row.to_dto() for row in rows),
            total=total,
            limit=limit,
            offset=offset,
        )

    @staticmethod
    def list_categories() -> tuple[ExpenseCategory, ...]:
        return EXPENSE_CATEGORIES
