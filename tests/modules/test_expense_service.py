"""
Tests for ExpenseService.

Covers:
- Document creation and account resolution (explicit, category, default)
- Edit rules per status
- Lifecycle postings: approve (AP liability), pay, void (reversal)
- Idempotent approve / pay / void
- Listing and paging
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import (
    ExpenseNotFoundError,
    ExpenseValidationError,
    InactiveAccountError,
    InvalidAccountError,
    InvalidInputError,
    InvalidStateTransitionError,
    PeriodClosedError,
)
from ledger_modules.expense import (
    EXPENSE_CATEGORIES,
    ExpenseConfig,
    ExpenseLineInput,
    ExpenseService,
    ExpenseStatus,
)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def expense_service(session, deterministic_clock, ledger):
    # Commit reference data so a failed operation's rollback keeps it.
    session.commit()
    return ExpenseService(session, deterministic_clock)


@pytest.fixture
def draft(expense_service, test_actor_id):
    return expense_service.create_expense(
        expense_date=date(2024, 3, 5),
        description="March office costs",
        vendor_name="Landlord LLC",
        lines=[
            ExpenseLineInput(amount=Decimal("1800.00"), category="Rent"),
            ExpenseLineInput(amount=Decimal("200.00"), category="Utilities", department_id="ops"),
        ],
        tax=Decimal("40.00"),
        actor_id=test_actor_id,
    )


@pytest.fixture
def approved(expense_service, draft, test_actor_id):
    return expense_service.approve(draft.id, test_actor_id)


def _entry_lines(journal_selector, entry_id):
    entry = journal_selector.require_entry(entry_id)
    return sorted((ln.account_number, ln.debit, ln.credit) for ln in entry.lines)


# =============================================================================
# Create
# =============================================================================


class TestCreateExpense:
    def test_draft_with_totals(self, draft):
        assert draft.status == ExpenseStatus.DRAFT
        assert draft.expense_number == "EXP-1001"
        assert draft.subtotal == Decimal("2000.00")
        assert draft.tax == Decimal("40.00")
        assert draft.total == Decimal("2040.00")
        assert not draft.is_posted

    def test_lines_resolved_from_categories(self, draft):
        assert [ln.account_number for ln in draft.lines] == ["6200", "6250"]
        assert [ln.line_number for ln in draft.lines] == [1, 2]
        assert draft.lines[1].department_id == "ops"

    def test_explicit_account_wins(self, expense_service, test_actor_id):
        expense = expense_service.create_expense(
            expense_date=date(2024, 3, 6),
            description="Laptop stand",
            lines=[ExpenseLineInput(amount="45", account="6800", category="Rent")],
            actor_id=test_actor_id,
        )
        assert expense.lines[0].account_number == "6800"

    def test_document_category_fallback(self, expense_service, test_actor_id):
        expense = expense_service.create_expense(
            expense_date=date(2024, 3, 6),
            description="Conference",
            category="Travel & Entertainment",
            lines=[ExpenseLineInput(amount="300")],
            actor_id=test_actor_id,
        )
        assert expense.lines[0].account_number == "6600"

    def test_default_account(self, expense_service, test_actor_id):
        expense = expense_service.create_expense(
            expense_date=date(2024, 3, 6),
            description="Misc",
            lines=[ExpenseLineInput(amount="12.50")],
            actor_id=test_actor_id,
        )
        assert expense.lines[0].account_number == "6900"

    def test_numbers_increment(self, expense_service, draft, test_actor_id):
        second = expense_service.create_expense(
            expense_date=date(2024, 3, 7),
            description="Second",
            lines=[ExpenseLineInput(amount="10")],
            actor_id=test_actor_id,
        )
        assert second.expense_number == "EXP-1002"

    def test_configured_numbering(self, session, deterministic_clock, ledger, test_actor_id):
        session.commit()
        service = ExpenseService(
            session, deterministic_clock,
            config=ExpenseConfig(number_start=500, number_prefix="E"),
        )
        expense = service.create_expense(
            expense_date=date(2024, 3, 6),
            description="Numbered",
            lines=[ExpenseLineInput(amount="10")],
            actor_id=test_actor_id,
        )
        assert expense.expense_number == "E500"

    def test_no_lines(self, expense_service, test_actor_id):
        with pytest.raises(ExpenseValidationError):
            expense_service.create_expense(
                expense_date=date(2024, 3, 6), description="Empty", lines=[], actor_id=test_actor_id,
            )

    def test_blank_description(self, expense_service, test_actor_id):
        with pytest.raises(ExpenseValidationError):
            expense_service.create_expense(
                expense_date=date(2024, 3, 6),
                description="  ",
                lines=[ExpenseLineInput(amount="10")],
                actor_id=test_actor_id,
            )

    def test_negative_line(self, expense_service, test_actor_id):
        with pytest.raises(ExpenseValidationError, match="line 1"):
            expense_service.create_expense(
                expense_date=date(2024, 3, 6),
                description="Refund?",
                lines=[ExpenseLineInput(amount="-10")],
                actor_id=test_actor_id,
            )

    def test_negative_tax(self, expense_service, test_actor_id):
        with pytest.raises(ExpenseValidationError):
            expense_service.create_expense(
                expense_date=date(2024, 3, 6),
                description="Taxed",
                lines=[ExpenseLineInput(amount="10")],
                tax=Decimal("-1"),
                actor_id=test_actor_id,
            )

    def test_unknown_category(self, expense_service, test_actor_id):
        with pytest.raises(ExpenseValidationError, match="category"):
            expense_service.create_expense(
                expense_date=date(2024, 3, 6),
                description="Yacht",
                category="Yachts",
                lines=[ExpenseLineInput(amount="10")],
                actor_id=test_actor_id,
            )

    def test_unknown_account(self, expense_service, test_actor_id):
        with pytest.raises(InvalidAccountError):
            expense_service.create_expense(
                expense_date=date(2024, 3, 6),
                description="Bad account",
                lines=[ExpenseLineInput(amount="10", account="9999")],
                actor_id=test_actor_id,
            )

    def test_inactive_account(self, session, expense_service, account_service, ledger, test_actor_id):
        account_service.deactivate_account(ledger["6800"].id, test_actor_id)
        session.commit()
        with pytest.raises(InactiveAccountError):
            expense_service.create_expense(
                expense_date=date(2024, 3, 6),
                description="Supplies",
                lines=[ExpenseLineInput(amount="10", category="Office Supplies")],
                actor_id=test_actor_id,
            )

    def test_failed_create_leaves_no_document(self, expense_service, test_actor_id):
        with pytest.raises(InvalidAccountError):
            expense_service.create_expense(
                expense_date=date(2024, 3, 6),
                description="Bad account",
                lines=[ExpenseLineInput(amount="10", account="9999")],
                actor_id=test_actor_id,
            )
        assert expense_service.list_expenses().total == 0


# =============================================================================
# Update
# =============================================================================


class TestUpdateExpense:
    def test_replace_lines_recomputes_totals(self, expense_service, draft, test_actor_id):
        updated = expense_service.update_expense(
            draft.id, test_actor_id,
            lines=[ExpenseLineInput(amount="500", category="Insurance")],
        )
        assert [ln.account_number for ln in updated.lines] == ["6700"]
        assert updated.subtotal == Decimal("500.00")
        assert updated.total == Decimal("540.00")

    def test_tax_change(self, expense_service, draft, test_actor_id):
        updated = expense_service.update_expense(draft.id, test_actor_id, tax=Decimal("0"))
        assert updated.total == Decimal("2000.00")

    def test_unknown_field(self, expense_service, draft, test_actor_id):
        with pytest.raises(InvalidInputError, match="status"):
            expense_service.update_expense(draft.id, test_actor_id, status="paid")

    def test_approved_accepts_descriptive_changes(self, expense_service, approved, test_actor_id):
        updated = expense_service.update_expense(
            approved.id, test_actor_id, notes="Receipt filed", reference_number="INV-88",
        )
        assert updated.notes == "Receipt filed"
        assert updated.status == ExpenseStatus.APPROVED

    def test_approved_rejects_amount_changes(self, expense_service, approved, test_actor_id):
        with pytest.raises(InvalidStateTransitionError):
            expense_service.update_expense(approved.id, test_actor_id, tax=Decimal("1"))

    def test_void_not_editable(self, expense_service, draft, test_actor_id):
        expense_service.void(draft.id, test_actor_id)
        with pytest.raises(InvalidStateTransitionError):
            expense_service.update_expense(draft.id, test_actor_id, notes="too late")

    def test_unknown_expense(self, expense_service, test_actor_id):
        with pytest.raises(ExpenseNotFoundError):
            expense_service.update_expense(uuid4(), test_actor_id, notes="x")


# =============================================================================
# Lifecycle
# =============================================================================


class TestSubmit:
    def test_draft_to_pending(self, expense_service, draft, test_actor_id, deterministic_clock):
        submitted = expense_service.submit(draft.id, test_actor_id)
        assert submitted.status == ExpenseStatus.PENDING_APPROVAL
        assert submitted.submitted_at is not None
        assert not submitted.is_posted

    def test_zero_total_rejected(self, expense_service, test_actor_id):
        expense = expense_service.create_expense(
            expense_date=date(2024, 3, 6),
            description="Nothing",
            lines=[ExpenseLineInput(amount="0")],
            actor_id=test_actor_id,
        )
        with pytest.raises(ExpenseValidationError):
            expense_service.submit(expense.id, test_actor_id)

    def test_submit_twice_rejected(self, expense_service, draft, test_actor_id):
        expense_service.submit(draft.id, test_actor_id)
        with pytest.raises(InvalidStateTransitionError):
            expense_service.submit(draft.id, test_actor_id)


class TestApprove:
    def test_posts_liability(self, approved, journal_selector, test_actor_id):
        assert approved.status == ExpenseStatus.APPROVED
        assert approved.is_posted
        assert approved.approved_by_id == test_actor_id
        assert _entry_lines(journal_selector, approved.journal_entry_id) == [
            ("2000", Decimal("0"), Decimal("2040.00")),
            ("2300", Decimal("40.00"), Decimal("0")),
            ("6200", Decimal("1800.00"), Decimal("0")),
            ("6250", Decimal("200.00"), Decimal("0")),
        ]

    def test_liability_entry_metadata(self, approved, journal_selector):
        entry = journal_selector.require_entry(approved.journal_entry_id)
        assert entry.entry_date == date(2024, 3, 5)
        assert entry.source_type == "expense"
        assert entry.source_id == f"{approved.id}:liability"
        assert entry.description == f"Expense {approved.expense_number} - Landlord LLC"
        dept = [ln for ln in entry.lines if ln.account_number == "6250"][0]
        assert dept.department_id == "ops"

    def test_entry_number_from_config(self, session, deterministic_clock, draft, journal_selector, test_actor_id):
        service = ExpenseService(session, deterministic_clock, ExpenseConfig(entry_number_start=70001))
        expense = service.approve(draft.id, test_actor_id)
        assert journal_selector.require_entry(expense.journal_entry_id).entry_number == 70001

    def test_from_pending(self, expense_service, draft, test_actor_id):
        expense_service.submit(draft.id, test_actor_id)
        assert expense_service.approve(draft.id, test_actor_id).status == ExpenseStatus.APPROVED

    def test_no_tax_line_when_untaxed(self, expense_service, journal_selector, test_actor_id):
        expense = expense_service.create_expense(
            expense_date=date(2024, 3, 6),
            description="Software",
            lines=[ExpenseLineInput(amount="99", category="Software Subscriptions")],
            actor_id=test_actor_id,
        )
        approved = expense_service.approve(expense.id, test_actor_id)
        accounts = [a for a, _, _ in _entry_lines(journal_selector, approved.journal_entry_id)]
        assert accounts == ["2000", "6300"]

    def test_approve_is_idempotent(self, expense_service, approved, journal_selector, test_actor_id):
        again = expense_service.approve(approved.id, test_actor_id)
        assert again.journal_entry_id == approved.journal_entry_id
        assert journal_selector.list_entries(source_type="expense").total == 1

    def test_closed_period_leaves_draft(
        self, session, expense_service, draft, period_service, fiscal_year_2024, test_actor_id,
    ):
        period_service.close_period(fiscal_year_2024[3].id, test_actor_id)
        session.commit()
        with pytest.raises(PeriodClosedError):
            expense_service.approve(draft.id, test_actor_id)
        reloaded = expense_service.get_expense(draft.id)
        assert reloaded.status == ExpenseStatus.DRAFT
        assert not reloaded.is_posted


class TestPay:
    def test_posts_payment(self, expense_service, approved, journal_selector, test_actor_id):
        paid = expense_service.pay(approved.id, test_actor_id, payment_method="ach")

        assert paid.status == ExpenseStatus.PAID
        assert paid.payment_method == "ach"
        assert paid.payment_date == date(2024, 3, 15)
        assert _entry_lines(journal_selector, paid.payment_entry_id) == [
            ("1010", Decimal("0"), Decimal("2040.00")),
            ("2000", Decimal("2040.00"), Decimal("0")),
        ]

    def test_explicit_payment_date(self, expense_service, approved, journal_selector, test_actor_id):
        paid = expense_service.pay(approved.id, test_actor_id, payment_date=date(2024, 4, 2))
        assert journal_selector.require_entry(paid.payment_entry_id).entry_date == date(2024, 4, 2)

    def test_ap_cleared(self, expense_service, approved, ledger_selector, ledger, test_actor_id):
        expense_service.pay(approved.id, test_actor_id)
        assert ledger_selector.account_balance(ledger["2000"].id).balance == Decimal("0")
        assert ledger_selector.is_balanced()

    def test_pay_draft_rejected(self, expense_service, draft, test_actor_id):
        with pytest.raises(InvalidStateTransitionError):
            expense_service.pay(draft.id, test_actor_id)

    def test_pay_is_idempotent(self, expense_service, approved, test_actor_id):
        first = expense_service.pay(approved.id, test_actor_id)
        second = expense_service.pay(approved.id, test_actor_id)
        assert second.payment_entry_id == first.payment_entry_id


class TestVoid:
    def test_void_draft_posts_nothing(self, expense_service, draft, journal_selector, test_actor_id):
        voided = expense_service.void(draft.id, test_actor_id)
        assert voided.status == ExpenseStatus.VOID
        assert voided.void_entry_id is None
        assert journal_selector.list_entries().total == 0

    def test_void_approved_reverses_liability(
        self, expense_service, approved, journal_selector, ledger_selector, ledger, test_actor_id,
    ):
        voided = expense_service.void(approved.id, test_actor_id)

        assert voided.void_entry_id is not None
        liability = journal_selector.require_entry(approved.journal_entry_id)
        assert liability.status == "reversed"
        reversal = journal_selector.require_entry(voided.void_entry_id)
        assert reversal.reversal_of_id == approved.journal_entry_id
        assert reversal.entry_date == date(2024, 3, 15)
        assert ledger_selector.account_balance(ledger["2000"].id).balance == Decimal("0")

    def test_void_paid_rejected(self, expense_service, approved, test_actor_id):
        expense_service.pay(approved.id, test_actor_id)
        with pytest.raises(InvalidStateTransitionError):
            expense_service.void(approved.id, test_actor_id)

    def test_void_is_idempotent(self, expense_service, approved, journal_selector, test_actor_id):
        first = expense_service.void(approved.id, test_actor_id)
        second = expense_service.void(approved.id, test_actor_id)
        assert second.void_entry_id == first.void_entry_id
        assert journal_selector.list_entries(source_type="reversal").total == 1


# =============================================================================
# Queries
# =============================================================================


class TestListExpenses:
    @pytest.fixture
    def several(self, expense_service, test_actor_id):
        created = []
        for day in (4, 8, 12):
            created.append(expense_service.create_expense(
                expense_date=date(2024, 3, day),
                description=f"Item {day}",
                lines=[ExpenseLineInput(amount=str(day))],
                actor_id=test_actor_id,
            ))
        expense_service.submit(created[0].id, test_actor_id)
        return created

    def test_newest_first(self, expense_service, several):
        page = expense_service.list_expenses()
        assert [e.expense_date.day for e in page.expenses] == [12, 8, 4]
        assert page.total == 3

    def test_status_filter(self, expense_service, several):
        page = expense_service.list_expenses(status=ExpenseStatus.PENDING_APPROVAL)
        assert [e.id for e in page.expenses] == [several[0].id]
        assert expense_service.list_expenses(status="draft").total == 2

    def test_date_filter(self, expense_service, several):
        page = expense_service.list_expenses(start_date=date(2024, 3, 5), end_date=date(2024, 3, 10))
        assert page.total == 1

    def test_paging(self, expense_service, several):
        page = expense_service.list_expenses(limit=2)
        assert page.has_more
        assert not expense_service.list_expenses(limit=2, offset=2).has_more

    def test_page_size_from_config(self, session, deterministic_clock, several):
        service = ExpenseService(
            session, deterministic_clock, ExpenseConfig(default_page_size=2, max_page_size=2),
        )
        assert len(service.list_expenses().expenses) == 2
        assert service.list_expenses(limit=50).limit == 2

    def test_get_unknown(self, expense_service):
        with pytest.raises(ExpenseNotFoundError):
            expense_service.get_expense(uuid4())

    def test_categories(self):
        names = [c.name for c in ExpenseService.list_categories()]
        assert len(names) == len(EXPENSE_CATEGORIES) == 17
        assert "Other Expense" in names


class TestExpenseLogging:
    def test_approval_logged(self, expense_service, draft, test_actor_id, captured_logs):
        expense_service.approve(draft.id, test_actor_id)
        events = [r for r in captured_logs() if r["message"] == "expense_approved"]
        assert events[0]["expense_number"] == "EXP-1001"
        assert Decimal(events[0]["total"]) == Decimal("2040.00")
