"""
Financial Reporting Domain Models (``ledger_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects representing statement outputs: trial
balance, income statement, balance sheet, cash flow statement and the
account drill-down.  The analytics reports (KPIs, anomalies, project
profitability) live here too.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Built by
``ledger_modules.reporting.statements`` and
``ledger_modules.reporting.analytics`` and returned by
``ReportingService``.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields are ``Decimal`` quantized to 0.01.
* Percentages and ratios are ``Decimal`` too (margins to 0.1, ratios to 0.01).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


# =========================================================================
# Enums
# =========================================================================


class ReportType(str, Enum):
    """Types of financial reports."""

    TRIAL_BALANCE = "trial_balance"
    BALANCE_SHEET = "balance_sheet"
    INCOME_STATEMENT = "income_statement"
    CASH_FLOW = "cash_flow"
    ACCOUNT_DRILLDOWN = "account_drilldown"
    FINANCIAL_KPIS = "financial_kpis"
    ANOMALIES = "anomalies"
    PROJECT_PROFITABILITY = "project_profitability"


# =========================================================================
# Report Metadata (common to all reports)
# =========================================================================


@dataclass(frozen=True)
class ReportMetadata:
    """Metadata attached to every financial report."""

    report_type: ReportType
    entity_name: str
    as_of_date: date
    generated_at: str  # ISO timestamp from the injected clock
    period_start: date | None = None
    period_end: date | None = None
    period_id: UUID | None = None


# =========================================================================
# Trial Balance
# =========================================================================


@dataclass(frozen=True)
class TrialBalanceLineItem:
    """A single account line; ``balance`` is signed by normal balance."""

    account_id: UUID | None
    account_number: str
    account_name: str
    account_type: str
    sub_type: str
    normal_balance: str
    debit_total: Decimal
    credit_total: Decimal
    balance: Decimal
    is_virtual: bool = False


@dataclass(frozen=True)
class TrialBalanceReport:
    metadata: ReportMetadata
    lines: tuple[TrialBalanceLineItem, ...]
    total_debits: Decimal
    total_credits: Decimal
    difference: Decimal
    is_balanced: bool


# =========================================================================
# Statement sections
# =========================================================================


@dataclass(frozen=True)
class StatementSection:
    """A labelled group of account lines with its total."""

    label: str
    lines: tuple[TrialBalanceLineItem, ...]
    total: Decimal


# =========================================================================
# Income Statement
# =========================================================================


@dataclass(frozen=True)
class IncomeStatementReport:
    """
    Multi-step income statement.

    Revenue - COGS = Gross Profit - Operating Expenses = Operating Income
    + Other Revenue - Other Expenses = Net Income
    """

    metadata: ReportMetadata
    revenue: StatementSection
    cost_of_services: StatementSection
    gross_profit: Decimal
    operating_expenses: StatementSection
    operating_income: Decimal
    other_revenue: StatementSection
    other_expenses: StatementSection
    net_income: Decimal
    total_revenue: Decimal
    total_expenses: Decimal


# =========================================================================
# Balance Sheet
# =========================================================================


@dataclass(frozen=True)
class BalanceSheetReport:
    """
    Classified balance sheet.

    Equity includes a virtual "Current Period Earnings" line carrying
    cumulative net income, because revenue and expense accounts are not
    closed into retained earnings by an entry.
    """

    metadata: ReportMetadata

    current_assets: StatementSection
    fixed_assets: StatementSection
    other_assets: StatementSection
    total_assets: Decimal

    current_liabilities: StatementSection
    long_term_liabilities: StatementSection
    total_liabilities: Decimal

    equity: StatementSection
    current_period_earnings: Decimal
    total_equity: Decimal

    total_liabilities_and_equity: Decimal
    difference: Decimal
    is_balanced: bool


# =========================================================================
# Cash Flow Statement (Indirect Method)
# =========================================================================


@dataclass(frozen=True)
class CashFlowLineItem:
    description: str
    amount: Decimal
    account_number: str | None = None


@dataclass(frozen=True)
class CashFlowSection:
    label: str
    lines: tuple[CashFlowLineItem, ...]
    total: Decimal


@dataclass(frozen=True)
class CashFlowStatementReport:
    """
    Statement of cash flows, indirect method.

    Operating: net income adjusted for working-capital changes
    Investing: changes in fixed and non-current assets
    Financing: changes in long-term debt and contributed equity
    """

    metadata: ReportMetadata
    net_income: Decimal
    operating_activities: CashFlowSection
    net_cash_from_operations: Decimal
    investing_activities: CashFlowSection
    net_cash_from_investing: Decimal
    financing_activities: CashFlowSection
    net_cash_from_financing: Decimal
    net_cash_change: Decimal
    beginning_cash: Decimal
    ending_cash: Decimal
    cash_change_actual: Decimal
    reconciles: bool  # net_cash_change == cash_change_actual within 0.01


# =========================================================================
# Account drill-down
# =========================================================================


@dataclass(frozen=True)
class DrilldownLine:
    journal_entry_id: UUID
    entry_number: int
    entry_date: date
    description: str
    source_type: str
    debit: Decimal
    credit: Decimal
    running_balance: Decimal


@dataclass(frozen=True)
class AccountDrilldownReport:
    metadata: ReportMetadata
    account_id: UUID
    account_number: str
    account_name: str
    account_type: str
    sub_type: str
    normal_balance: str
    opening_balance: Decimal
    lines: tuple[DrilldownLine, ...]
    total_transactions: int
    total_debits: Decimal
    total_credits: Decimal
    ending_balance: Decimal

    @property
    def is_truncated(self) -> bool:
        return len(self.lines) < self.total_transactions


# =========================================================================
# Analytics: KPIs
# =========================================================================


class InsightKind(str, Enum):
    POSITIVE = "positive"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class Insight:
    kind: InsightKind
    title: str
    description: str


@dataclass(frozen=True)
class ProfitabilityKpis:
    """Year-to-date profitability; margins are percentages of revenue."""

    revenue: Decimal
    cost_of_services: Decimal
    gross_profit: Decimal
    operating_expenses: Decimal
    other_expenses: Decimal
    net_income: Decimal
    gross_margin: Decimal
    operating_margin: Decimal
    net_margin: Decimal


@dataclass(frozen=True)
class LiquidityKpis:
    current_assets: Decimal
    current_liabilities: Decimal
    quick_assets: Decimal  # cash plus receivables
    current_ratio: Decimal
    quick_ratio: Decimal


@dataclass(frozen=True)
class EfficiencyKpis:
    accounts_receivable: Decimal
    days_sales_outstanding: int


@dataclass(frozen=True)
class LeverageKpis:
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal  # assets - liabilities
    debt_to_equity: Decimal


@dataclass(frozen=True)
class TrendPoint:
    """Revenue and expenses for one calendar month (``period`` is YYYY-MM)."""

    period: str
    revenue: Decimal
    expenses: Decimal
    net_income: Decimal


@dataclass(frozen=True)
class RevenueForecast:
    next_period_revenue: Decimal
    confidence: str  # "low" or "medium"


@dataclass(frozen=True)
class FinancialKpisReport:
    """
    Year-to-date KPIs with a monthly trend, a naive forecast and
    rule-based insights.

    Ratios whose denominator is zero or negative are reported as 0.
    """

    metadata: ReportMetadata
    profitability: ProfitabilityKpis
    liquidity: LiquidityKpis
    efficiency: EfficiencyKpis
    leverage: LeverageKpis
    trend: tuple[TrendPoint, ...]
    forecast: RevenueForecast
    insights: tuple[Insight, ...]


# =========================================================================
# Analytics: anomalies
# =========================================================================


class AnomalySeverity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Anomaly:
    journal_entry_id: UUID
    entry_number: int
    entry_date: date
    description: str
    source_type: str
    amount: Decimal
    reason: str
    severity: AnomalySeverity
    z_score: Decimal | None = None  # None for threshold-only findings


@dataclass(frozen=True)
class AnomalyReport:
    """Unusual entries, most severe first."""

    metadata: ReportMetadata
    anomalies: tuple[Anomaly, ...]
    entries_examined: int

    def count(self, severity: AnomalySeverity) -> int:
        return sum(1 for a in self.anomalies if a.severity == severity)

    @property
    def total(self) -> int:
        return len(self.anomalies)


# =========================================================================
# Analytics: project profitability
# =========================================================================


@dataclass(frozen=True)
class ProjectProfitabilityLine:
    project_id: str
    project_name: str
    revenue: Decimal
    labor_cost: Decimal
    gross_profit: Decimal
    margin: Decimal
    invoice_count: int


@dataclass(frozen=True)
class ProjectProfitabilityReport:
    """Per-project revenue against posted labor cost, most profitable first."""

    metadata: ReportMetadata
    projects: tuple[ProjectProfitabilityLine, ...]
    total_revenue: Decimal
    total_labor_cost: Decimal
    total_gross_profit: Decimal
    total_margin: Decimal
