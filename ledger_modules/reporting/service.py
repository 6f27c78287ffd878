"""
Reporting Module Service (``ledger_modules.reporting.service``).

Responsibility
--------------
Orchestrates statement generation -- trial balance, income statement,
balance sheet, cash flow statement and account drill-down -- by bridging
the kernel's ``LedgerSelector`` to the pure transformation functions in
``statements.py``.  The analytics reports (KPIs, anomalies, project
profitability) are built the same way from ``analytics.py``.  This is a
**read-only** service.

Architecture position
---------------------
**Modules layer** -- thin glue.  Constructor: ``session`` + ``clock`` +
``config``.

Invariants enforced
-------------------
* Read-only -- no mutations to the journal.
* Reversed entries and their reversals are both counted, so they cancel.
* All monetary amounts use ``Decimal``.

Failure modes
-------------
* ``InvalidInputError`` -- end date before start date; non-positive
  anomaly look-back.
* ``PeriodNotFoundError`` -- unknown ``period_id``.
* ``AccountNotFoundError`` -- drill-down on an unknown account.

Audit relevance
---------------
A structured log event is emitted for every report generated, carrying
the report type, its dates and whether it balanced.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import AccountNotFoundError, InvalidInputError, PeriodNotFoundError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.accounting_period import AccountingPeriod
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_modules.reporting.analytics import (
    build_financial_kpis,
    build_project_profitability,
    detect_anomalies,
)
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    AccountDrilldownReport,
    AnomalyReport,
    BalanceSheetReport,
    CashFlowStatementReport,
    FinancialKpisReport,
    IncomeStatementReport,
    ProjectProfitabilityReport,
    ReportMetadata,
    ReportType,
    TrialBalanceReport,
)
from ledger_modules.reporting.statements import (
    build_account_drilldown,
    build_balance_sheet,
    build_cash_flow_statement,
    build_income_statement,
    build_trial_balance,
)

logger = get_logger("modules.reporting.service")


def month_windows(as_of_date: date, months: int) -> list[tuple[str, date, date]]:
    """
    (YYYY-MM, first day, last day) for the ``months`` calendar months
    ending with the month of ``as_of_date``, oldest first.  The current
    month ends at ``as_of_date``.
    """
    windows = []
    year, month = as_of_date.year, as_of_date.month
    for _ in range(months):
        start = date(year, month, 1)
        next_month = date(year + month // 12, month % 12 + 1, 1)
        end = min(next_month - timedelta(days=1), as_of_date)
        windows.append((f"{year:04d}-{month:02d}", start, end))
        year, month = (year, month - 1) if month > 1 else (year - 1, 12)
    windows.reverse()
    return windows


class ReportingService:
    """
    Financial statement generation service.

    Contract
    --------
    * Every public method returns a typed, frozen report.
    * Dates default to the injected clock: "today" for as-of reports and
      January 1 of the current year through today for range reports.

    Non-goals
    ---------
    * Does NOT post journal entries.
    * Does NOT enforce period locks.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ReportingConfig.with_defaults()
        self._ledger = LedgerSelector(session)

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _build_metadata(
        self,
        report_type: ReportType,
        as_of_date: date,
        period_start: date | None = None,
        period_end: date | None = None,
        period_id: UUID | None = None,
    ) -> ReportMetadata:
        """Build report metadata with injected clock timestamp."""
        return ReportMetadata(
            report_type=report_type,
            entity_name=self._config.entity_name,
            as_of_date=as_of_date,
            generated_at=self._clock.now().isoformat(),
            period_start=period_start,
            period_end=period_end,
            period_id=period_id,
        )

    def _load_period(self, period_id: UUID) -> AccountingPeriod:
        period = self._session.get(AccountingPeriod, period_id)
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period

    def _default_range(
        self,
        start_date: date | None,
        end_date: date | None,
    ) -> tuple[date, date]:
        today = self._clock.today()
        end = end_date or today
        start = start_date or date(end.year, 1, 1)
        if end < start:
            raise InvalidInputError("end_date", f"{end} cannot be before start_date {start}")
        return start, end

    # =========================================================================
    # Public API
    # =========================================================================

    def trial_balance(
        self,
        as_of_date: date | None = None,
        period_id: UUID | None = None,
    ) -> TrialBalanceReport:
        """
        Generate a trial balance.

        With ``period_id`` only entries assigned to that period count;
        otherwise every entry dated on or before ``as_of_date`` (default
        today) counts.
        """
        if period_id is not None:
            period = self._load_period(period_id)
            rows = self._ledger.trial_balance(period_id=period_id)
            metadata = self._build_metadata(
                ReportType.TRIAL_BALANCE,
                as_of_date=period.end_date,
                period_start=period.start_date,
                period_end=period.end_date,
                period_id=period_id,
            )
        else:
            as_of_date = as_of_date or self._clock.today()
            rows = self._ledger.trial_balance(as_of_date=as_of_date)
            metadata = self._build_metadata(ReportType.TRIAL_BALANCE, as_of_date)

        report = build_trial_balance(rows, metadata)

        logger.info(
            "trial_balance_generated",
            extra={
                "as_of_date": metadata.as_of_date.isoformat(),
                "line_count": len(report.lines),
                "is_balanced": report.is_balanced,
            },
        )
        return report

    def income_statement(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        period_id: UUID | None = None,
    ) -> IncomeStatementReport:
        """
        Generate a multi-step income statement for a date range.

        ``period_id`` selects the period's own start and end dates.

        Raises:
            InvalidInputError: ``end_date`` before ``start_date``.
            PeriodNotFoundError: Unknown ``period_id``.
        """
        if period_id is not None:
            period = self._load_period(period_id)
            start_date, end_date = period.start_date, period.end_date
        start, end = self._default_range(start_date, end_date)

        rows = self._ledger.trial_balance(start_date=start, as_of_date=end)
        metadata = self._build_metadata(
            ReportType.INCOME_STATEMENT,
            as_of_date=end,
            period_start=start,
            period_end=end,
            period_id=period_id,
        )
        report = build_income_statement(rows, metadata, self._config.include_zero_balances)

        logger.info(
            "income_statement_generated",
            extra={
                "period_start": start.isoformat(),
                "period_end": end.isoformat(),
                "net_income": str(report.net_income),
            },
        )
        return report

    def balance_sheet(self, as_of_date: date | None = None) -> BalanceSheetReport:
        """
        Generate a classified balance sheet as of a date (default today).

        Equity carries a virtual Current Period Earnings line equal to
        cumulative net income through ``as_of_date``.
        """
        as_of_date = as_of_date or self._clock.today()
        rows = self._ledger.trial_balance(as_of_date=as_of_date)
        metadata = self._build_metadata(ReportType.BALANCE_SHEET, as_of_date)
        report = build_balance_sheet(rows, metadata, self._config.include_zero_balances)

        log = logger.info if report.is_balanced else logger.warning
        log(
            "balance_sheet_generated",
            extra={
                "as_of_date": as_of_date.isoformat(),
                "total_assets": str(report.total_assets),
                "total_l_and_e": str(report.total_liabilities_and_equity),
                "is_balanced": report.is_balanced,
            },
        )
        return report

    def cash_flow_statement(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> CashFlowStatementReport:
        """
        Generate an indirect-method cash flow statement.

        Opening balances are taken through the day before ``start_date``;
        closing balances through ``end_date``.

        Raises:
            InvalidInputError: ``end_date`` before ``start_date``.
        """
        start, end = self._default_range(start_date, end_date)

        opening_rows = self._ledger.trial_balance(as_of_date=start - timedelta(days=1))
        closing_rows = self._ledger.trial_balance(as_of_date=end)
        period_rows = self._ledger.trial_balance(start_date=start, as_of_date=end)

        metadata = self._build_metadata(
            ReportType.CASH_FLOW,
            as_of_date=end,
            period_start=start,
            period_end=end,
        )
        report = build_cash_flow_statement(
            opening_rows, closing_rows, period_rows, self._config.accounts, metadata,
        )

        logger.info(
            "cash_flow_statement_generated",
            extra={
                "period_start": start.isoformat(),
                "period_end": end.isoformat(),
                "net_cash_change": str(report.net_cash_change),
                "cash_change_actual": str(report.cash_change_actual),
                "reconciles": report.reconciles,
            },
        )
        return report

    def account_drilldown(
        self,
        account_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
        limit: int | None = None,
    ) -> AccountDrilldownReport:
        """
        Activity for one account with opening and running balances.

        ``limit`` (default 50, clamped to 1..200) keeps the most recent
        lines of the range; the summary totals always cover the whole
        range.

        Raises:
            AccountNotFoundError: Unknown ``account_id``.
            InvalidInputError: ``end_date`` before ``start_date``.
        """
        account = self._session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        if start_date and end_date and end_date < start_date:
            raise InvalidInputError("end_date", f"{end_date} cannot be before start_date {start_date}")

        limit = self._config.clamp_drilldown_limit(limit)

        opening = ZERO
        if start_date is not None:
            opening = self._ledger.account_balance(account_id, before_date=start_date).balance
        in_range = self._ledger.account_balance(
            account_id, start_date=start_date, as_of_date=end_date,
        )
        lines = self._ledger.account_lines(
            account_id,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            most_recent=True,
        )

        metadata = self._build_metadata(
            ReportType.ACCOUNT_DRILLDOWN,
            as_of_date=end_date or self._clock.today(),
            period_start=start_date,
            period_end=end_date,
        )
        report = build_account_drilldown(
            account_id=account.id,
            account_number=account.account_number,
            account_name=account.name,
            account_type=str(account.account_type),
            sub_type=str(account.sub_type),
            normal_balance=str(account.normal_balance),
            opening_balance=opening,
            range_debits=in_range.debit_total,
            range_credits=in_range.credit_total,
            total_transactions=in_range.line_count,
            lines=lines,
            metadata=metadata,
        )

        logger.info(
            "account_drilldown_generated",
            extra={
                "account_number": account.account_number,
                "line_count": len(report.lines),
                "total_transactions": report.total_transactions,
            },
        )
        return report

    # =========================================================================
    # Analytics
    # =========================================================================

    def financial_kpis(self, as_of_date: date | None = None) -> FinancialKpisReport:
        """
        Year-to-date profitability, liquidity, collection and leverage KPIs
        as of a date (default today), with a monthly revenue trend over the
        last ``kpi_trend_months`` months and a three-month-ahead forecast.
        """
        as_of_date = as_of_date or self._clock.today()
        year_start = date(as_of_date.year, 1, 1)

        ytd_rows = self._ledger.trial_balance(start_date=year_start, as_of_date=as_of_date)
        balance_rows = self._ledger.trial_balance(as_of_date=as_of_date)
        monthly_rows = [
            (label, self._ledger.trial_balance(start_date=start, as_of_date=end))
            for label, start, end in month_windows(as_of_date, self._config.kpi_trend_months)
        ]

        metadata = self._build_metadata(
            ReportType.FINANCIAL_KPIS,
            as_of_date=as_of_date,
            period_start=year_start,
            period_end=as_of_date,
        )
        report = build_financial_kpis(
            ytd_rows,
            balance_rows,
            monthly_rows,
            self._config.accounts,
            days_elapsed=(as_of_date - year_start).days,
            metadata=metadata,
        )

        logger.info(
            "financial_kpis_generated",
            extra={
                "as_of_date": as_of_date.isoformat(),
                "ytd_revenue": str(report.profitability.revenue),
                "gross_margin": str(report.profitability.gross_margin),
                "insight_count": len(report.insights),
            },
        )
        return report

    def anomalies(
        self,
        days: int | None = None,
        as_of_date: date | None = None,
    ) -> AnomalyReport:
        """
        Unusual entries among the most recent ``anomaly_entry_limit``
        entries dated within ``days`` (default ``anomaly_lookback_days``)
        before ``as_of_date``.

        Raises:
            InvalidInputError: ``days`` is not positive.
        """
        days = self._config.anomaly_lookback_days if days is None else days
        if days < 1:
            raise InvalidInputError("days", f"must be positive, got {days}")
        as_of_date = as_of_date or self._clock.today()
        start = as_of_date - timedelta(days=days)

        entries = self._ledger.entry_totals(
            start_date=start,
            end_date=as_of_date,
            limit=self._config.anomaly_entry_limit,
        )
        metadata = self._build_metadata(
            ReportType.ANOMALIES,
            as_of_date=as_of_date,
            period_start=start,
            period_end=as_of_date,
        )
        report = detect_anomalies(
            entries,
            metadata,
            z_threshold=self._config.anomaly_z_threshold,
            min_sample=self._config.anomaly_min_sample,
            large_entry_threshold=self._config.large_entry_threshold,
        )

        log = logger.warning if report.total else logger.info
        log(
            "anomaly_scan_completed",
            extra={
                "period_start": start.isoformat(),
                "period_end": as_of_date.isoformat(),
                "entries_examined": report.entries_examined,
                "anomaly_count": report.total,
            },
        )
        return report

    def project_profitability(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        project_names: Mapping[str, str] | None = None,
    ) -> ProjectProfitabilityReport:
        """
        Revenue against posted labor cost per project id.

        ``project_names`` maps project ids to display names; the ledger
        only stores ids.

        Raises:
            InvalidInputError: ``end_date`` before ``start_date``.
        """
        start, end = self._default_range(start_date, end_date)
        activity = self._ledger.project_activity(start_date=start, end_date=end)
        metadata = self._build_metadata(
            ReportType.PROJECT_PROFITABILITY,
            as_of_date=end,
            period_start=start,
            period_end=end,
        )
        report = build_project_profitability(activity, metadata, project_names)

        logger.info(
            "project_profitability_generated",
            extra={
                "period_start": start.isoformat(),
                "period_end": end.isoformat(),
                "project_count": len(report.projects),
                "total_gross_profit": str(report.total_gross_profit),
            },
        )
        return report
