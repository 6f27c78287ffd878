"""
Tests for LedgerSelector -- balances derived from posted lines.

Every balance is recomputed from journal lines; nothing is cached.
"""

from datetime import date
from decimal import Decimal

import pytest


@pytest.fixture
def activity(post_entry, ledger):
    """A small quarter of activity across three months."""
    post_entry(date(2024, 1, 10), "1010", "3000", "10000.00", description="Owner investment")
    post_entry(date(2024, 2, 5), "1100", "4000", "2500.00", description="Invoice")
    post_entry(date(2024, 2, 20), "1010", "1100", "1000.00", description="Payment")
    post_entry(date(2024, 3, 1), "6200", "1010", "1200.00", description="Rent")
    return ledger


class TestTrialBalance:
    def test_only_accounts_with_activity(self, ledger_selector, activity):
        rows = ledger_selector.trial_balance()
        assert [r.account_number for r in rows] == ["1010", "1100", "3000", "4000", "6200"]

    def test_totals_and_signed_balances(self, ledger_selector, activity):
        rows = {r.account_number: r for r in ledger_selector.trial_balance()}

        cash = rows["1010"]
        assert cash.debit_total == Decimal("11000.00")
        assert cash.credit_total == Decimal("1200.00")
        assert cash.balance == Decimal("9800.00")

        revenue = rows["4000"]
        assert revenue.normal_balance == "credit"
        assert revenue.balance == Decimal("2500.00")
        assert revenue.account_type == "revenue"
        assert revenue.sub_type == "Operating Revenue"

    def test_debits_equal_credits(self, ledger_selector, activity):
        rows = ledger_selector.trial_balance()
        assert sum(r.debit_total for r in rows) == sum(r.credit_total for r in rows)

    def test_as_of_date(self, ledger_selector, activity):
        rows = {r.account_number: r for r in ledger_selector.trial_balance(as_of_date=date(2024, 2, 5))}
        assert "6200" not in rows
        assert rows["1100"].balance == Decimal("2500.00")

    def test_start_date(self, ledger_selector, activity):
        rows = {r.account_number: r for r in ledger_selector.trial_balance(start_date=date(2024, 2, 1))}
        assert "3000" not in rows

    def test_before_date_is_exclusive(self, ledger_selector, activity):
        rows = {r.account_number: r for r in ledger_selector.trial_balance(before_date=date(2024, 2, 20))}
        assert rows["1100"].balance == Decimal("2500.00")

    def test_period_filter(self, ledger_selector, activity, fiscal_year_2024):
        rows = ledger_selector.trial_balance(period_id=fiscal_year_2024[3].id)
        assert {r.account_number for r in rows} == {"1010", "6200"}

    def test_reversed_entries_still_counted(
        self, ledger_selector, reversal_service, post_entry, ledger, test_actor_id,
    ):
        original = post_entry(date(2024, 3, 1), "6300", "1010", "99.00")
        reversal_service.reverse_entry(original.entry_id, test_actor_id)

        rows = {r.account_number: r for r in ledger_selector.trial_balance()}
        assert rows["6300"].debit_total == Decimal("99.00")
        assert rows["6300"].credit_total == Decimal("99.00")
        assert rows["6300"].balance == Decimal("0")


class TestAccountBalance:
    def test_single_account(self, ledger_selector, activity):
        balance = ledger_selector.account_balance(activity["1100"].id)
        assert balance.balance == Decimal("1500.00")
        assert balance.line_count == 2

    def test_account_without_lines_is_zero(self, ledger_selector, activity):
        balance = ledger_selector.account_balance(activity["1020"].id)
        assert balance.balance == Decimal("0")
        assert balance.line_count == 0

    def test_balances_by_account(self, ledger_selector, activity):
        by_id = ledger_selector.balances_by_account(as_of_date=date(2024, 1, 31))
        assert set(by_id) == {activity["1010"].id, activity["3000"].id}


class TestLedgerTotals:
    def test_empty_ledger_is_balanced(self, ledger_selector, ledger):
        assert ledger_selector.total_debits_credits() == (Decimal("0"), Decimal("0"))
        assert ledger_selector.is_balanced()

    def test_totals(self, ledger_selector, activity):
        debits, credits = ledger_selector.total_debits_credits()
        assert debits == credits == Decimal("14700.00")


class TestAccountLines:
    def test_chronological(self, ledger_selector, activity):
        lines = ledger_selector.account_lines(activity["1010"].id)
        assert [ln.entry_date for ln in lines] == [
            date(2024, 1, 10), date(2024, 2, 20), date(2024, 3, 1),
        ]
        assert lines[0].entry_description == "Owner investment"
        assert lines[-1].credit == Decimal("1200.00")

    def test_date_range(self, ledger_selector, activity):
        lines = ledger_selector.account_lines(
            activity["1010"].id, start_date=date(2024, 2, 1), end_date=date(2024, 2, 29),
        )
        assert len(lines) == 1

    def test_most_recent_limit_stays_chronological(self, ledger_selector, activity):
        lines = ledger_selector.account_lines(activity["1010"].id, limit=2, most_recent=True)
        assert [ln.entry_date for ln in lines] == [date(2024, 2, 20), date(2024, 3, 1)]

    def test_earliest_limit(self, ledger_selector, activity):
        lines = ledger_selector.account_lines(activity["1010"].id, limit=1)
        assert lines[0].entry_date == date(2024, 1, 10)

    def test_count(self, ledger_selector, activity):
        assert ledger_selector.count_account_lines(activity["1010"].id) == 3
        assert ledger_selector.count_account_lines(
            activity["1010"].id, start_date=date(2024, 3, 1),
        ) == 1
