"""
Pure financial statement transformation functions.

These functions transform trial balance rows into structured financial
statements.  ZERO I/O.  ZERO side effects.

All monetary values are Decimal, quantized to 0.01 on output.  Inputs are
``TrialBalanceRow`` values from the kernel's LedgerSelector; outputs are
the frozen dataclasses in ``ledger_modules.reporting.models``.

Functions in this module follow the kernel domain purity convention:
- No database access
- No clock access
- Deterministic: same inputs always produce same outputs
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from ledger_kernel.db.types import ZERO, is_within_tolerance, round_money
from ledger_kernel.models.account import AccountSubType, AccountType
from ledger_kernel.selectors.ledger_selector import LedgerLine, TrialBalanceRow, signed_balance
from ledger_modules.reporting.config import CashFlowAccounts
from ledger_modules.reporting.models import (
    AccountDrilldownReport,
    BalanceSheetReport,
    CashFlowLineItem,
    CashFlowSection,
    CashFlowStatementReport,
    DrilldownLine,
    IncomeStatementReport,
    ReportMetadata,
    StatementSection,
    TrialBalanceLineItem,
    TrialBalanceReport,
)

CURRENT_PERIOD_EARNINGS = "Current Period Earnings"


# =========================================================================
# Helpers
# =========================================================================


def to_line_item(row: TrialBalanceRow) -> TrialBalanceLineItem:
    return TrialBalanceLineItem(
        account_id=row.account_id,
        account_number=row.account_number,
        account_name=row.account_name,
        account_type=row.account_type,
        sub_type=row.sub_type,
        normal_balance=row.normal_balance,
        debit_total=round_money(row.debit_total),
        credit_total=round_money(row.credit_total),
        balance=round_money(row.balance),
    )


def _section(
    label: str,
    rows: Iterable[TrialBalanceRow],
    include_zero: bool = False,
) -> StatementSection:
    """Section of account lines sorted by account number."""
    items = [
        to_line_item(row)
        for row in sorted(rows, key=lambda r: r.account_number)
        if include_zero or row.balance != ZERO
    ]
    return StatementSection(
        label=label,
        lines=tuple(items),
        total=round_money(sum((row.balance for row in rows), ZERO)),
    )


def compute_net_income(rows: Iterable[TrialBalanceRow]) -> Decimal:
    """
    Net income = Σ revenue natural balances − Σ expense natural balances.

    Only REVENUE and EXPENSE accounts are considered.
    """
    revenue = ZERO
    expense = ZERO
    for row in rows:
        if row.account_type == AccountType.REVENUE:
            revenue += row.balance
        elif row.account_type == AccountType.EXPENSE:
            expense += row.balance
    return revenue - expense


# =========================================================================
# 1. TRIAL BALANCE
# =========================================================================


def build_trial_balance(
    rows: list[TrialBalanceRow],
    metadata: ReportMetadata,
) -> TrialBalanceReport:
    """Trial balance over every account with activity."""
    items = tuple(to_line_item(row) for row in sorted(rows, key=lambda r: r.account_number))
    total_debits = sum((row.debit_total for row in rows), ZERO)
    total_credits = sum((row.credit_total for row in rows), ZERO)

    return TrialBalanceReport(
        metadata=metadata,
        lines=items,
        total_debits=round_money(total_debits),
        total_credits=round_money(total_credits),
        difference=round_money(total_debits - total_credits),
        is_balanced=is_within_tolerance(total_debits, total_credits),
    )


# =========================================================================
# 2. INCOME STATEMENT
# =========================================================================


def classify_for_income_statement(
    rows: Iterable[TrialBalanceRow],
) -> dict[str, list[TrialBalanceRow]]:
    """
    Split revenue and expense rows by sub-type.

    Returns dict with keys: revenue, other_revenue, cogs,
    operating_expenses, other_expenses.
    """
    result: dict[str, list[TrialBalanceRow]] = {
        "revenue": [],
        "other_revenue": [],
        "cogs": [],
        "operating_expenses": [],
        "other_expenses": [],
    }
    for row in rows:
        if row.account_type == AccountType.REVENUE:
            if row.sub_type == AccountSubType.OTHER_REVENUE:
                result["other_revenue"].append(row)
            else:
                result["revenue"].append(row)
        elif row.account_type == AccountType.EXPENSE:
            if row.sub_type == AccountSubType.COGS:
                result["cogs"].append(row)
            elif row.sub_type == AccountSubType.OTHER_EXPENSE:
                result["other_expenses"].append(row)
            else:
                result["operating_expenses"].append(row)
        # ASSET, LIABILITY, EQUITY excluded from the income statement
    return result


def build_income_statement(
    rows: list[TrialBalanceRow],
    metadata: ReportMetadata,
    include_zero: bool = False,
) -> IncomeStatementReport:
    """
    Build a multi-step income statement from rows covering the range.

    gross_profit = revenue − cogs
    operating_income = gross_profit − operating expenses
    net_income = operating_income + other revenue − other expenses
    """
    classified = classify_for_income_statement(rows)

    revenue = _section("Revenue", classified["revenue"], include_zero)
    cogs = _section("Cost of Services", classified["cogs"], include_zero)
    opex = _section("Operating Expenses", classified["operating_expenses"], include_zero)
    other_revenue = _section("Other Revenue", classified["other_revenue"], include_zero)
    other_expenses = _section("Other Expenses", classified["other_expenses"], include_zero)

    gross_profit = revenue.total - cogs.total
    operating_income = gross_profit - opex.total
    net_income = operating_income + other_revenue.total - other_expenses.total

    return IncomeStatementReport(
        metadata=metadata,
        revenue=revenue,
        cost_of_services=cogs,
        gross_profit=round_money(gross_profit),
        operating_expenses=opex,
        operating_income=round_money(operating_income),
        other_revenue=other_revenue,
        other_expenses=other_expenses,
        net_income=round_money(net_income),
        total_revenue=round_money(revenue.total + other_revenue.total),
        total_expenses=round_money(cogs.total + opex.total + other_expenses.total),
    )


# =========================================================================
# 3. BALANCE SHEET
# =========================================================================


def classify_for_balance_sheet(
    rows: Iterable[TrialBalanceRow],
) -> dict[str, list[TrialBalanceRow]]:
    """
    Split asset, liability and equity rows by sub-type.

    Returns dict with keys: current_assets, fixed_assets, other_assets,
    current_liabilities, long_term_liabilities, equity.
    """
    result: dict[str, list[TrialBalanceRow]] = {
        "current_assets": [],
        "fixed_assets": [],
        "other_assets": [],
        "current_liabilities": [],
        "long_term_liabilities": [],
        "equity": [],
    }
    for row in rows:
        if row.account_type == AccountType.ASSET:
            if row.sub_type == AccountSubType.CURRENT_ASSET:
                result["current_assets"].append(row)
            elif row.sub_type == AccountSubType.FIXED_ASSET:
                result["fixed_assets"].append(row)
            else:
                result["other_assets"].append(row)
        elif row.account_type == AccountType.LIABILITY:
            if row.sub_type == AccountSubType.LONG_TERM_LIABILITY:
                result["long_term_liabilities"].append(row)
            else:
                result["current_liabilities"].append(row)
        elif row.account_type == AccountType.EQUITY:
            result["equity"].append(row)
    return result


def build_balance_sheet(
    rows: list[TrialBalanceRow],
    metadata: ReportMetadata,
    include_zero: bool = False,
) -> BalanceSheetReport:
    """
    Build a classified balance sheet from cumulative rows.

    Revenue and expense balances are never closed by an entry, so their
    cumulative net is shown as a virtual "Current Period Earnings" equity
    line.  With that line, assets = liabilities + equity whenever the
    ledger itself balances.
    """
    classified = classify_for_balance_sheet(rows)

    current_assets = _section("Current Assets", classified["current_assets"], include_zero)
    fixed_assets = _section("Fixed Assets", classified["fixed_assets"], include_zero)
    other_assets = _section("Other Assets", classified["other_assets"], include_zero)
    total_assets = current_assets.total + fixed_assets.total + other_assets.total

    current_liabilities = _section(
        "Current Liabilities", classified["current_liabilities"], include_zero,
    )
    long_term_liabilities = _section(
        "Long-Term Liabilities", classified["long_term_liabilities"], include_zero,
    )
    total_liabilities = current_liabilities.total + long_term_liabilities.total

    earnings = round_money(compute_net_income(rows))
    equity_accounts = _section("Equity", classified["equity"], include_zero)
    earnings_line = TrialBalanceLineItem(
        account_id=None,
        account_number="",
        account_name=CURRENT_PERIOD_EARNINGS,
        account_type=AccountType.EQUITY.value,
        sub_type=AccountSubType.RETAINED_EARNINGS.value,
        normal_balance="credit",
        debit_total=ZERO,
        credit_total=ZERO,
        balance=earnings,
        is_virtual=True,
    )
    total_equity = equity_accounts.total + earnings
    equity = StatementSection(
        label="Equity",
        lines=equity_accounts.lines + (earnings_line,),
        total=round_money(total_equity),
    )

    total_l_and_e = total_liabilities + total_equity
    difference = total_assets - total_l_and_e

    return BalanceSheetReport(
        metadata=metadata,
        current_assets=current_assets,
        fixed_assets=fixed_assets,
        other_assets=other_assets,
        total_assets=round_money(total_assets),
        current_liabilities=current_liabilities,
        long_term_liabilities=long_term_liabilities,
        total_liabilities=round_money(total_liabilities),
        equity=equity,
        current_period_earnings=earnings,
        total_equity=round_money(total_equity),
        total_liabilities_and_equity=round_money(total_l_and_e),
        difference=round_money(difference),
        is_balanced=is_within_tolerance(total_assets, total_l_and_e),
    )


# =========================================================================
# 4. CASH FLOW STATEMENT (indirect)
# =========================================================================


def _balances_by_number(rows: Iterable[TrialBalanceRow]) -> dict[str, Decimal]:
    return {row.account_number: row.balance for row in rows}


def _change(
    numbers: Iterable[str],
    opening: dict[str, Decimal],
    closing: dict[str, Decimal],
) -> Decimal:
    return sum(
        (closing.get(n, ZERO) - opening.get(n, ZERO) for n in numbers),
        ZERO,
    )


def _account_changes(
    opening_rows: list[TrialBalanceRow],
    closing_rows: list[TrialBalanceRow],
    sub_types: tuple[AccountSubType, ...],
    sign: int,
) -> list[CashFlowLineItem]:
    """One line per account of ``sub_types`` whose balance moved."""
    opening = _balances_by_number(opening_rows)
    closing = _balances_by_number(closing_rows)
    names: dict[str, str] = {}
    for row in list(opening_rows) + list(closing_rows):
        if row.sub_type in sub_types:
            names[row.account_number] = row.account_name

    items = []
    for number in sorted(names):
        change = _change((number,), opening, closing) * sign
        if change != ZERO:
            items.append(
                CashFlowLineItem(
                    description=names[number],
                    amount=round_money(change),
                    account_number=number,
                )
            )
    return items


def _cash_section(label: str, items: list[CashFlowLineItem]) -> CashFlowSection:
    return CashFlowSection(
        label=label,
        lines=tuple(items),
        total=round_money(sum((i.amount for i in items), ZERO)),
    )


def build_cash_flow_statement(
    opening_rows: list[TrialBalanceRow],
    closing_rows: list[TrialBalanceRow],
    period_rows: list[TrialBalanceRow],
    accounts: CashFlowAccounts,
    metadata: ReportMetadata,
) -> CashFlowStatementReport:
    """
    Build an indirect-method cash flow statement.

    Args:
        opening_rows: Cumulative rows before the range start.
        closing_rows: Cumulative rows through the range end.
        period_rows: Rows for the range only (net income).
        accounts: Account numbers singled out for working capital and cash.
        metadata: Report metadata.

    Each change is the closing balance minus the opening balance, in the
    account's natural direction.  Asset increases consume cash; liability
    and equity increases provide it.
    """
    opening = _balances_by_number(opening_rows)
    closing = _balances_by_number(closing_rows)
    net_income = round_money(compute_net_income(period_rows))

    operating = [CashFlowLineItem(description="Net Income", amount=net_income)]
    adjustments = (
        ("(Increase) decrease in Accounts Receivable", (accounts.accounts_receivable,), -1),
        ("Increase (decrease) in Accounts Payable", (accounts.accounts_payable,), 1),
        ("Increase (decrease) in Accrued Expenses", accounts.accrued_expense_accounts, 1),
        ("Increase (decrease) in Deferred Revenue", (accounts.deferred_revenue,), 1),
    )
    for description, numbers, sign in adjustments:
        operating.append(
            CashFlowLineItem(
                description=description,
                amount=round_money(_change(numbers, opening, closing) * sign),
                account_number=numbers[0] if len(numbers) == 1 else None,
            )
        )
    operating_section = _cash_section("Operating Activities", operating)

    investing_section = _cash_section(
        "Investing Activities",
        _account_changes(
            opening_rows,
            closing_rows,
            (AccountSubType.FIXED_ASSET, AccountSubType.NON_CURRENT_ASSET),
            sign=-1,
        ),
    )
    financing_section = _cash_section(
        "Financing Activities",
        _account_changes(
            opening_rows,
            closing_rows,
            (AccountSubType.LONG_TERM_LIABILITY, AccountSubType.EQUITY),
            sign=1,
        ),
    )

    net_cash_change = (
        operating_section.total + investing_section.total + financing_section.total
    )
    beginning_cash = sum((opening.get(n, ZERO) for n in accounts.cash_accounts), ZERO)
    ending_cash = sum((closing.get(n, ZERO) for n in accounts.cash_accounts), ZERO)
    actual = ending_cash - beginning_cash

    return CashFlowStatementReport(
        metadata=metadata,
        net_income=net_income,
        operating_activities=operating_section,
        net_cash_from_operations=operating_section.total,
        investing_activities=investing_section,
        net_cash_from_investing=investing_section.total,
        financing_activities=financing_section,
        net_cash_from_financing=financing_section.total,
        net_cash_change=round_money(net_cash_change),
        beginning_cash=round_money(beginning_cash),
        ending_cash=round_money(ending_cash),
        cash_change_actual=round_money(actual),
        reconciles=is_within_tolerance(net_cash_change, actual),
    )


# =========================================================================
# 5. ACCOUNT DRILL-DOWN
# =========================================================================


def build_account_drilldown(
    account_id: UUID,
    account_number: str,
    account_name: str,
    account_type: str,
    sub_type: str,
    normal_balance: str,
    opening_balance: Decimal,
    range_debits: Decimal,
    range_credits: Decimal,
    total_transactions: int,
    lines: list[LedgerLine],
    metadata: ReportMetadata,
) -> AccountDrilldownReport:
    """
    Chronological account activity with a running balance.

    ``lines`` may be only the most recent part of the range.  The running
    balance is anchored so the last line lands on the ending balance of the
    whole range.
    """
    ending_balance = opening_balance + signed_balance(normal_balance, range_debits, range_credits)
    window_change = sum(
        (signed_balance(normal_balance, ln.debit, ln.credit) for ln in lines),
        ZERO,
    )
    running = ending_balance - window_change

    drill_lines = []
    for ln in lines:
        running += signed_balance(normal_balance, ln.debit, ln.credit)
        drill_lines.append(
            DrilldownLine(
                journal_entry_id=ln.journal_entry_id,
                entry_number=ln.entry_number,
                entry_date=ln.entry_date,
                description=ln.line_description or ln.entry_description,
                source_type=ln.source_type,
                debit=round_money(ln.debit),
                credit=round_money(ln.credit),
                running_balance=round_money(running),
            )
        )

    return AccountDrilldownReport(
        metadata=metadata,
        account_id=account_id,
        account_number=account_number,
        account_name=account_name,
        account_type=account_type,
        sub_type=sub_type,
        normal_balance=normal_balance,
        opening_balance=round_money(opening_balance),
        lines=tuple(drill_lines),
        total_transactions=total_transactions,
        total_debits=round_money(range_debits),
        total_credits=round_money(range_credits),
        ending_balance=round_money(ending_balance),
    )
