"""
Tests for AutoPostService.

Covers:
- Posting rules per record kind (invoices, payments, time entries, renewals)
- Re-runs post nothing twice
- One failing record never blocks the rest of its batch
- Renewal revenue recognition
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_config import parse_configuration
from ledger_kernel.exceptions import (
    InvalidInputError,
    PeriodClosedError,
    PeriodNotFoundError,
    SourceRecordNotFoundError,
)
from ledger_modules.autopost import (
    AutoPostAccountMap,
    AutoPostConfig,
    AutoPostService,
    revenue_recognition_source_id,
)
from ledger_modules.autopost.orm import (
    InvoiceModel,
    InvoicePaymentModel,
    RenewalModel,
    TimeEntryModel,
)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def committed_ledger(session, ledger):
    """Chart and calendar committed so service rollbacks keep them."""
    session.commit()
    return ledger


@pytest.fixture
def autopost_service(session, deterministic_clock, committed_ledger):
    return AutoPostService(session, deterministic_clock)


@pytest.fixture
def make_invoice(session, test_actor_id):
    counter = iter(range(1001, 2000))

    def _make(
        issue_date=date(2024, 3, 1), total="1500.00", status="sent", customer="Acme Corp", project_id=None,
    ):
        invoice = InvoiceModel(
            invoice_number=str(next(counter)),
            customer_name=customer,
            issue_date=issue_date,
            status=status,
            total=Decimal(total),
            project_id=project_id,
            created_by_id=test_actor_id,
        )
        session.add(invoice)
        session.flush()
        return invoice

    return _make


@pytest.fixture
def make_time_entry(session, test_actor_id):
    def _make(minutes=90, billable=True, work_date=date(2024, 3, 4), hourly_rate=None, **kwargs):
        entry = TimeEntryModel(
            work_date=work_date,
            minutes=minutes,
            billable=billable,
            hourly_rate=hourly_rate,
            user_name=kwargs.pop("user_name", "Dana"),
            project_id=kwargs.pop("project_id", "proj-7"),
            project_name=kwargs.pop("project_name", "Website Rebuild"),
            created_by_id=test_actor_id,
            **kwargs,
        )
        session.add(entry)
        session.flush()
        return entry

    return _make


@pytest.fixture
def renewal(session, test_actor_id):
    record = RenewalModel(
        renewal_date=date(2024, 3, 1),
        amount=Decimal("1200.00"),
        customer_name="Globex",
        product_name="Pro Plan",
        term_months=12,
        created_by_id=test_actor_id,
    )
    session.add(record)
    session.flush()
    return record


def _lines(entry):
    return {(ln.account_number, ln.debit, ln.credit) for ln in entry.lines}


# =============================================================================
# Invoices
# =============================================================================


class TestPostInvoices:
    def test_posts_ar_and_revenue(self, autopost_service, make_invoice, journal_selector, test_actor_id):
        invoice = make_invoice()

        result = autopost_service.post_invoices(test_actor_id)

        assert result.posted == 1
        assert result.skipped == 0
        assert not result.has_errors
        [entry] = journal_selector.find_by_source("invoice", str(invoice.id))
        assert entry.entry_date == date(2024, 3, 1)
        assert entry.description == f"Invoice #{invoice.invoice_number} - Acme Corp"
        assert _lines(entry) == {
            ("1100", Decimal("1500.00"), Decimal("0")),
            ("4000", Decimal("0"), Decimal("1500.00")),
        }

    def test_entry_numbers_start_from_configuration(
        self, session, deterministic_clock, committed_ledger, make_invoice, journal_selector, test_actor_id,
    ):
        ledger_config = parse_configuration({"numbering": {"entry_number_start": 50001}})
        service = AutoPostService(
            session, deterministic_clock, AutoPostConfig.from_ledger_config(ledger_config),
        )
        invoice = make_invoice()

        service.post_invoices(test_actor_id)

        [entry] = journal_selector.find_by_source("invoice", str(invoice.id))
        assert entry.entry_number == 50001

    def test_project_tag_on_revenue_line(self, autopost_service, make_invoice, journal_selector, test_actor_id):
        invoice = make_invoice(project_id="proj-7")

        autopost_service.post_invoices(test_actor_id)

        [entry] = journal_selector.find_by_source("invoice", str(invoice.id))
        tags = {ln.account_number: ln.project_id for ln in entry.lines}
        assert tags == {"1100": None, "4000": "proj-7"}

    def test_rerun_posts_nothing(self, autopost_service, make_invoice, journal_selector, test_actor_id):
        make_invoice()
        make_invoice(issue_date=date(2024, 3, 2))
        autopost_service.post_invoices(test_actor_id)

        again = autopost_service.post_invoices(test_actor_id)

        assert again.posted == 0
        assert again.skipped == 2
        assert journal_selector.list_entries(source_type="invoice").total == 2

    def test_void_invoices_ignored(self, autopost_service, make_invoice, test_actor_id):
        make_invoice(status="void")
        make_invoice(status="paid")

        result = autopost_service.post_invoices(test_actor_id)
        assert result.total == 1

    def test_zero_total_skipped_without_error(self, autopost_service, make_invoice, test_actor_id):
        make_invoice(total="0")

        result = autopost_service.post_invoices(test_actor_id)
        assert result.posted == 0
        assert result.skipped == 1
        assert result.errors == ()

    def test_closed_period_isolated(
        self, autopost_service, make_invoice, period_service, fiscal_year_2024, test_actor_id,
    ):
        period_service.close_period(fiscal_year_2024[2].id, test_actor_id)
        blocked = make_invoice(issue_date=date(2024, 2, 10))
        make_invoice(issue_date=date(2024, 3, 10))

        result = autopost_service.post_invoices(test_actor_id)

        assert result.posted == 1
        assert result.skipped == 1
        assert result.failed == 1
        [error] = result.errors
        assert error.source_id == str(blocked.id)
        assert error.code == "PERIOD_CLOSED"

    def test_date_without_period_isolated(self, autopost_service, make_invoice, test_actor_id):
        make_invoice(issue_date=date(2023, 12, 20))
        make_invoice()

        result = autopost_service.post_invoices(test_actor_id)
        assert result.posted == 1
        assert result.errors[0].code == "PERIOD_NOT_FOUND"

    def test_failed_record_posts_after_period_reopens(
        self, autopost_service, make_invoice, period_service, fiscal_year_2024, test_actor_id,
    ):
        period_id = fiscal_year_2024[2].id
        period_service.close_period(period_id, test_actor_id)
        make_invoice(issue_date=date(2024, 2, 10))
        assert autopost_service.post_invoices(test_actor_id).failed == 1

        period_service.reopen_period(period_id, test_actor_id)
        assert autopost_service.post_invoices(test_actor_id).posted == 1

    def test_missing_account_isolated(
        self, session, deterministic_clock, committed_ledger, make_invoice, test_actor_id,
    ):
        config = AutoPostConfig(accounts=AutoPostAccountMap(service_revenue="4999"))
        service = AutoPostService(session, deterministic_clock, config=config)
        make_invoice()

        result = service.post_invoices(test_actor_id)
        assert result.posted == 0
        assert result.errors[0].code == "INVALID_ACCOUNT"


# =============================================================================
# Payments
# =============================================================================


class TestPostPayments:
    def test_posts_cash_and_clears_ar(
        self, session, autopost_service, make_invoice, journal_selector, test_actor_id,
    ):
        invoice = make_invoice()
        payment = InvoicePaymentModel(
            invoice_id=invoice.id,
            payment_date=date(2024, 3, 20),
            amount=Decimal("600.00"),
            method="ach",
            created_by_id=test_actor_id,
        )
        session.add(payment)
        session.flush()

        result = autopost_service.post_payments(test_actor_id)

        assert result.posted == 1
        [entry] = journal_selector.find_by_source("payment", str(payment.id))
        assert entry.description == f"Payment for Invoice #{invoice.invoice_number} - Acme Corp (ach)"
        assert _lines(entry) == {
            ("1010", Decimal("600.00"), Decimal("0")),
            ("1100", Decimal("0"), Decimal("600.00")),
        }

    def test_invoice_and_payment_leave_open_receivable(
        self, session, autopost_service, make_invoice, ledger_selector, committed_ledger, test_actor_id,
    ):
        invoice = make_invoice(total="1000.00")
        session.add(InvoicePaymentModel(
            invoice_id=invoice.id,
            payment_date=date(2024, 3, 25),
            amount=Decimal("400.00"),
            created_by_id=test_actor_id,
        ))
        session.flush()

        autopost_service.post_invoices(test_actor_id)
        autopost_service.post_payments(test_actor_id)

        ar = ledger_selector.account_balance(committed_ledger["1100"].id)
        assert ar.balance == Decimal("600.00")


# =============================================================================
# Time entries
# =============================================================================


class TestPostTimeEntries:
    def test_billable_entry_at_batch_rate(
        self, autopost_service, make_time_entry, journal_selector, test_actor_id,
    ):
        entry = make_time_entry(minutes=90, billable=True)

        result = autopost_service.post_time_entries(test_actor_id, hourly_rate=Decimal("100"))

        assert result.posted == 1
        [je] = journal_selector.find_by_source("time_entry", str(entry.id))
        assert je.description == "Dana - 1.50h billable time on Website Rebuild"
        assert _lines(je) == {
            ("5100", Decimal("150.00"), Decimal("0")),
            ("2110", Decimal("0"), Decimal("150.00")),
        }
        assert {ln.project_id for ln in je.lines} == {"proj-7"}

    def test_non_billable_entry_at_default_rate(
        self, autopost_service, make_time_entry, journal_selector, test_actor_id,
    ):
        entry = make_time_entry(minutes=60, billable=False)

        autopost_service.post_time_entries(test_actor_id)

        [je] = journal_selector.find_by_source("time_entry", str(entry.id))
        assert "non-billable" in je.description
        assert ("6050", Decimal("75.00"), Decimal("0")) in _lines(je)

    def test_entry_rate_overrides_batch_rate(self, autopost_service, make_time_entry):
        entry = make_time_entry(minutes=30, hourly_rate=Decimal("200"))
        assert autopost_service.time_entry_amount(entry, Decimal("100")) == Decimal("100.00")

    def test_amount_rounded_to_cents(self, autopost_service, make_time_entry):
        entry = make_time_entry(minutes=7)
        # 7/60 h * 75 = 8.75
        assert autopost_service.time_entry_amount(entry) == Decimal("8.75")
        entry_b = make_time_entry(minutes=1)
        # 1/60 h * 100 = 1.6666...
        assert autopost_service.time_entry_amount(entry_b, Decimal("100")) == Decimal("1.67")

    def test_zero_minutes_skipped(self, autopost_service, make_time_entry, test_actor_id):
        make_time_entry(minutes=0)
        result = autopost_service.post_time_entries(test_actor_id)
        assert result.posted == 0
        assert result.skipped == 1

    @pytest.mark.parametrize("rate", [Decimal("0"), Decimal("-5")])
    def test_non_positive_rate_rejected(self, autopost_service, test_actor_id, rate):
        with pytest.raises(InvalidInputError) as exc_info:
            autopost_service.post_time_entries(test_actor_id, hourly_rate=rate)
        assert exc_info.value.field == "hourly_rate"

    def test_missing_names_fall_back(self, autopost_service, make_time_entry, journal_selector, test_actor_id):
        entry = make_time_entry(user_name=None, project_name=None, project_id=None)
        autopost_service.post_time_entries(test_actor_id)
        [je] = journal_selector.find_by_source("time_entry", str(entry.id))
        assert je.description.startswith("Unknown - 1.50h")
        assert je.description.endswith("no project")


# =============================================================================
# Renewals and revenue recognition
# =============================================================================


class TestRenewals:
    def test_renewal_defers_revenue(self, autopost_service, renewal, journal_selector, test_actor_id):
        result = autopost_service.post_renewals(test_actor_id)

        assert result.posted == 1
        [je] = journal_selector.find_by_source("renewal", str(renewal.id))
        assert je.description == "Renewal - Pro Plan for Globex"
        assert _lines(je) == {
            ("1100", Decimal("1200.00"), Decimal("0")),
            ("2200", Decimal("0"), Decimal("1200.00")),
        }

    def test_recognize_one_month(
        self, autopost_service, renewal, fiscal_year_2024, test_actor_id,
    ):
        autopost_service.post_renewals(test_actor_id)

        result = autopost_service.recognize_renewal_revenue(
            renewal.id, fiscal_year_2024[3].id, test_actor_id,
        )

        entry = result.entry
        assert result.is_new
        assert entry.entry_date == date(2024, 3, 31)
        assert entry.source_id == revenue_recognition_source_id(renewal.id, "March 2024")
        assert entry.source_id.endswith("_rev_March_2024")
        assert _lines(entry) == {
            ("2200", Decimal("100.00"), Decimal("0")),
            ("4100", Decimal("0"), Decimal("100.00")),
        }

    def test_recognition_is_idempotent_per_period(
        self, autopost_service, renewal, fiscal_year_2024, test_actor_id,
    ):
        first = autopost_service.recognize_renewal_revenue(renewal.id, fiscal_year_2024[3].id, test_actor_id)
        second = autopost_service.recognize_renewal_revenue(renewal.id, fiscal_year_2024[3].id, test_actor_id)
        other = autopost_service.recognize_renewal_revenue(renewal.id, fiscal_year_2024[4].id, test_actor_id)

        assert not second.is_new
        assert second.entry_id == first.entry_id
        assert other.entry_id != first.entry_id

    def test_explicit_amount(self, autopost_service, renewal, fiscal_year_2024, test_actor_id):
        result = autopost_service.recognize_renewal_revenue(
            renewal.id, fiscal_year_2024[3].id, test_actor_id, amount=Decimal("250.00"),
        )
        assert result.entry.total_debits == Decimal("250.00")

    def test_non_positive_amount_rejected(self, autopost_service, renewal, fiscal_year_2024, test_actor_id):
        with pytest.raises(InvalidInputError):
            autopost_service.recognize_renewal_revenue(
                renewal.id, fiscal_year_2024[3].id, test_actor_id, amount=Decimal("0"),
            )

    def test_unknown_renewal(self, autopost_service, fiscal_year_2024, test_actor_id):
        with pytest.raises(SourceRecordNotFoundError) as exc_info:
            autopost_service.recognize_renewal_revenue(uuid4(), fiscal_year_2024[3].id, test_actor_id)
        assert exc_info.value.source_type == "renewal"

    def test_unknown_period(self, autopost_service, renewal, test_actor_id):
        with pytest.raises(PeriodNotFoundError):
            autopost_service.recognize_renewal_revenue(renewal.id, uuid4(), test_actor_id)

    def test_closed_period_raises(
        self, session, autopost_service, renewal, period_service, fiscal_year_2024, test_actor_id,
    ):
        period_service.close_period(fiscal_year_2024[3].id, test_actor_id)
        session.commit()
        with pytest.raises(PeriodClosedError):
            autopost_service.recognize_renewal_revenue(renewal.id, fiscal_year_2024[3].id, test_actor_id)


# =============================================================================
# Invoice adjustments and refunds
# =============================================================================


class TestInvoiceAdjustments:
    def test_increase(self, autopost_service, make_invoice, test_actor_id):
        invoice = make_invoice()

        result = autopost_service.post_invoice_adjustment(
            invoice.id, Decimal("250.00"), date(2024, 3, 12), test_actor_id,
        )

        assert result.is_new
        assert result.entry.source_type == "adjustment"
        assert result.entry.description == (
            f"Invoice #{invoice.invoice_number} adjustment (increase) - Acme Corp"
        )
        assert _lines(result.entry) == {
            ("1100", Decimal("250.00"), Decimal("0")),
            ("4000", Decimal("0"), Decimal("250.00")),
        }

    def test_decrease_reverses_direction(self, autopost_service, make_invoice, test_actor_id):
        invoice = make_invoice(project_id="proj-7")

        result = autopost_service.post_invoice_adjustment(
            invoice.id, Decimal("-100.00"), date(2024, 3, 12), test_actor_id,
        )

        assert "(decrease)" in result.entry.description
        assert _lines(result.entry) == {
            ("4000", Decimal("100.00"), Decimal("0")),
            ("1100", Decimal("0"), Decimal("100.00")),
        }
        revenue_line = next(ln for ln in result.entry.lines if ln.account_number == "4000")
        assert revenue_line.project_id == "proj-7"

    def test_zero_posts_nothing(self, autopost_service, make_invoice, journal_selector, test_actor_id):
        invoice = make_invoice()

        assert autopost_service.post_invoice_adjustment(
            invoice.id, Decimal("0"), date(2024, 3, 12), test_actor_id,
        ) is None
        assert journal_selector.list_entries(source_type="adjustment").total == 0

    def test_same_day_is_idempotent_unless_ids_differ(self, autopost_service, make_invoice, test_actor_id):
        invoice = make_invoice()
        day = date(2024, 3, 12)

        first = autopost_service.post_invoice_adjustment(invoice.id, Decimal("50"), day, test_actor_id)
        again = autopost_service.post_invoice_adjustment(invoice.id, Decimal("50"), day, test_actor_id)
        other = autopost_service.post_invoice_adjustment(
            invoice.id, Decimal("50"), day, test_actor_id, adjustment_id="credit-note-2",
        )

        assert not again.is_new
        assert again.entry_id == first.entry_id
        assert other.is_new

    def test_unknown_invoice(self, autopost_service, test_actor_id):
        with pytest.raises(SourceRecordNotFoundError):
            autopost_service.post_invoice_adjustment(
                uuid4(), Decimal("50"), date(2024, 3, 12), test_actor_id,
            )

    def test_closed_period_raises(
        self, autopost_service, make_invoice, period_service, fiscal_year_2024, test_actor_id,
    ):
        invoice = make_invoice()
        period_service.close_period(fiscal_year_2024[2].id, test_actor_id)

        with pytest.raises(PeriodClosedError):
            autopost_service.post_invoice_adjustment(
                invoice.id, Decimal("50"), date(2024, 2, 20), test_actor_id,
            )


class TestRefunds:
    def test_refund_debits_revenue_credits_cash(self, autopost_service, make_invoice, test_actor_id):
        invoice = make_invoice()

        result = autopost_service.post_refund(
            invoice.id, "rf-1", Decimal("300.00"), date(2024, 3, 14), test_actor_id,
            reason="Service credit",
        )

        assert result.is_new
        assert result.entry.source_type == "payment"
        assert result.entry.description == (
            f"Refund for Invoice #{invoice.invoice_number} - Acme Corp - Service credit"
        )
        assert _lines(result.entry) == {
            ("4000", Decimal("300.00"), Decimal("0")),
            ("1010", Decimal("0"), Decimal("300.00")),
        }

    def test_same_refund_posts_once(self, autopost_service, make_invoice, test_actor_id):
        invoice = make_invoice()

        first = autopost_service.post_refund(invoice.id, "rf-1", Decimal("300"), date(2024, 3, 14), test_actor_id)
        again = autopost_service.post_refund(invoice.id, "rf-1", Decimal("300"), date(2024, 3, 14), test_actor_id)

        assert not again.is_new
        assert again.entry_id == first.entry_id

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_non_positive_amount_rejected(self, autopost_service, make_invoice, test_actor_id, amount):
        invoice = make_invoice()
        with pytest.raises(InvalidInputError) as exc_info:
            autopost_service.post_refund(invoice.id, "rf-1", amount, date(2024, 3, 14), test_actor_id)
        assert exc_info.value.field == "amount"

    def test_blank_refund_id_rejected(self, autopost_service, make_invoice, test_actor_id):
        invoice = make_invoice()
        with pytest.raises(InvalidInputError):
            autopost_service.post_refund(invoice.id, "  ", Decimal("10"), date(2024, 3, 14), test_actor_id)


# =============================================================================
# Everything together
# =============================================================================


class TestPostAll:
    def test_runs_every_batch(
        self, session, autopost_service, make_invoice, make_time_entry, renewal,
        ledger_selector, test_actor_id,
    ):
        invoice = make_invoice()
        session.add(InvoicePaymentModel(
            invoice_id=invoice.id,
            payment_date=date(2024, 3, 12),
            amount=Decimal("1500.00"),
            created_by_id=test_actor_id,
        ))
        make_time_entry()
        session.flush()

        results = autopost_service.post_all(test_actor_id)

        assert set(results) == {"invoices", "payments", "time_entries", "renewals"}
        assert all(r.posted == 1 for r in results.values())
        assert ledger_selector.is_balanced()

    def test_merge_totals(self, autopost_service, make_invoice, renewal, test_actor_id):
        make_invoice()
        results = autopost_service.post_all(test_actor_id)
        combined = results["invoices"]
        for key in ("payments", "time_entries", "renewals"):
            combined = combined.merge(results[key])
        assert combined.posted == 2
        assert combined.total == 2


class TestAutoPostLogging:
    def test_batch_completion_logged(self, autopost_service, make_invoice, test_actor_id, captured_logs):
        make_invoice()
        autopost_service.post_invoices(test_actor_id)

        completed = [r for r in captured_logs() if r["message"] == "autopost_batch_completed"]
        assert completed[0]["batch"] == "invoices"
        assert completed[0]["posted"] == 1
        assert "duration_ms" in completed[0]

    def test_failure_logged_with_source(
        self, autopost_service, make_invoice, test_actor_id, captured_logs,
    ):
        invoice = make_invoice(issue_date=date(2023, 6, 1))
        autopost_service.post_invoices(test_actor_id)

        failed = [r for r in captured_logs() if r["message"] == "autopost_record_failed"]
        assert failed[0]["source_id"] == str(invoice.id)
        assert failed[0]["source_type"] == "invoice"
        assert failed[0]["error_code"] == "PERIOD_NOT_FOUND"
