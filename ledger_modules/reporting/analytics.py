"""
Pure analytics builders: KPIs, anomaly detection and project profitability.

Like ``statements.py`` these functions take rows already loaded by the
kernel selectors and return frozen report models.  ZERO I/O.  ZERO side
effects.  Deterministic.

Percentages are quantized to 0.1, ratios and money to 0.01, days sales
outstanding to whole days.  A ratio whose denominator is not positive is
reported as 0 rather than raising.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from decimal import ROUND_HALF_UP, Decimal

from ledger_kernel.db.types import ZERO, round_money
from ledger_kernel.models.account import AccountType
from ledger_kernel.models.journal import SourceType
from ledger_kernel.selectors.ledger_selector import EntryTotal, ProjectActivity, TrialBalanceRow
from ledger_modules.reporting.config import CashFlowAccounts
from ledger_modules.reporting.models import (
    Anomaly,
    AnomalyReport,
    AnomalySeverity,
    EfficiencyKpis,
    FinancialKpisReport,
    Insight,
    InsightKind,
    LeverageKpis,
    LiquidityKpis,
    ProfitabilityKpis,
    ProjectProfitabilityLine,
    ProjectProfitabilityReport,
    ReportMetadata,
    RevenueForecast,
    TrendPoint,
)
from ledger_modules.reporting.statements import (
    classify_for_balance_sheet,
    classify_for_income_statement,
)

HUNDRED = Decimal("100")
UNKNOWN_PROJECT = "Unknown Project"

# Source types whose large entries are flagged regardless of statistics.
MANUAL_SOURCE_TYPES = frozenset({SourceType.MANUAL.value, SourceType.ADJUSTMENT.value})

_SEVERITY_ORDER = {
    AnomalySeverity.HIGH: 0,
    AnomalySeverity.MEDIUM: 1,
    AnomalySeverity.LOW: 2,
}


def _total(rows: Iterable[TrialBalanceRow]) -> Decimal:
    return sum((row.balance for row in rows), ZERO)


def _ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator <= ZERO:
        return ZERO
    return round_money(numerator / denominator)


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if whole <= ZERO:
        return round_money(ZERO, 1)
    return round_money(part / whole * HUNDRED, 1)


# =========================================================================
# 1. KPIs
# =========================================================================


def build_trend(monthly_rows: Sequence[tuple[str, list[TrialBalanceRow]]]) -> list[TrendPoint]:
    """
    One point per month with revenue or expense activity.

    ``monthly_rows`` pairs a YYYY-MM label with the rows for that month,
    oldest first.  Months without activity are left out.
    """
    points = []
    for label, rows in monthly_rows:
        revenue_rows = [r for r in rows if r.account_type == AccountType.REVENUE]
        expense_rows = [r for r in rows if r.account_type == AccountType.EXPENSE]
        if not revenue_rows and not expense_rows:
            continue
        revenue = _total(revenue_rows)
        expenses = _total(expense_rows)
        points.append(
            TrendPoint(
                period=label,
                revenue=round_money(revenue),
                expenses=round_money(expenses),
                net_income=round_money(revenue - expenses),
            )
        )
    return points


def forecast_revenue(trend: Sequence[TrendPoint], fallback: Decimal) -> RevenueForecast:
    """
    Least-squares line through monthly revenue, read three months ahead.

    With fewer than three points the forecast is ``fallback``.
    """
    n = len(trend)
    confidence = "medium" if n >= 6 else "low"
    if n < 3:
        return RevenueForecast(next_period_revenue=round_money(fallback), confidence=confidence)

    xs = [Decimal(i) for i in range(n)]
    ys = [point.revenue for point in trend]
    sum_x = sum(xs, ZERO)
    sum_y = sum(ys, ZERO)
    sum_xy = sum((x * y for x, y in zip(xs, ys)), ZERO)
    sum_xx = sum((x * x for x in xs), ZERO)
    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n
    return RevenueForecast(
        next_period_revenue=round_money(intercept + slope * (n + 2)),
        confidence=confidence,
    )


def derive_insights(
    profitability: ProfitabilityKpis,
    liquidity: LiquidityKpis,
    efficiency: EfficiencyKpis,
    trend: Sequence[TrendPoint],
) -> list[Insight]:
    insights = []

    margin = profitability.gross_margin
    if margin >= 50:
        insights.append(Insight(
            InsightKind.POSITIVE, "Strong Gross Margin",
            f"Gross margin of {margin:.1f}% indicates healthy pricing and cost management.",
        ))
    elif margin < 30:
        insights.append(Insight(
            InsightKind.WARNING, "Low Gross Margin",
            f"Gross margin of {margin:.1f}% is below industry norms. "
            "Consider reviewing pricing or reducing cost of services.",
        ))

    ratio = liquidity.current_ratio
    if ratio >= 2:
        insights.append(Insight(
            InsightKind.POSITIVE, "Strong Liquidity",
            f"Current ratio of {ratio:.2f} indicates excellent short-term financial health.",
        ))
    elif ratio < 1:
        insights.append(Insight(
            InsightKind.WARNING, "Liquidity Concern",
            f"Current ratio of {ratio:.2f} suggests potential difficulty meeting "
            "short-term obligations.",
        ))

    dso = efficiency.days_sales_outstanding
    if dso > 45:
        insights.append(Insight(
            InsightKind.WARNING, "High DSO",
            f"DSO of {dso} days is elevated. Consider tightening credit terms "
            "or improving collections.",
        ))
    elif 0 < dso <= 30:
        insights.append(Insight(
            InsightKind.POSITIVE, "Efficient Collections",
            f"DSO of {dso} days indicates quick customer payment cycles.",
        ))

    if len(trend) >= 3:
        first, last = trend[-3], trend[-1]
        growth = (last.revenue - first.revenue) / max(Decimal(1), first.revenue) * HUNDRED
        if growth > 10:
            insights.append(Insight(
                InsightKind.POSITIVE, "Revenue Growth",
                f"Revenue has grown {growth:.1f}% over the last 3 months.",
            ))
        elif growth < -10:
            insights.append(Insight(
                InsightKind.WARNING, "Revenue Decline",
                f"Revenue has declined {abs(growth):.1f}% over the last 3 months.",
            ))

    return insights


def build_financial_kpis(
    ytd_rows: list[TrialBalanceRow],
    balance_rows: list[TrialBalanceRow],
    monthly_rows: Sequence[tuple[str, list[TrialBalanceRow]]],
    accounts: CashFlowAccounts,
    days_elapsed: int,
    metadata: ReportMetadata,
) -> FinancialKpisReport:
    """
    Financial KPIs as of ``metadata.as_of_date``.

    Args:
        ytd_rows: Rows from January 1 through the as-of date.
        balance_rows: Cumulative rows through the as-of date.
        monthly_rows: (YYYY-MM, rows) per trend month, oldest first.
        accounts: Cash and receivable account numbers (quick assets, DSO).
        days_elapsed: Days since January 1, at least 1.
        metadata: Report metadata.
    """
    income = classify_for_income_statement(ytd_rows)
    revenue = _total(income["revenue"]) + _total(income["other_revenue"])
    cogs = _total(income["cogs"])
    opex = _total(income["operating_expenses"])
    other = _total(income["other_expenses"])
    gross_profit = revenue - cogs
    net_income = gross_profit - opex - other

    profitability = ProfitabilityKpis(
        revenue=round_money(revenue),
        cost_of_services=round_money(cogs),
        gross_profit=round_money(gross_profit),
        operating_expenses=round_money(opex),
        other_expenses=round_money(other),
        net_income=round_money(net_income),
        gross_margin=_percent(gross_profit, revenue),
        operating_margin=_percent(gross_profit - opex, revenue),
        net_margin=_percent(net_income, revenue),
    )

    position = classify_for_balance_sheet(balance_rows)
    current_assets = _total(position["current_assets"])
    current_liabilities = _total(position["current_liabilities"])
    total_assets = current_assets + _total(position["fixed_assets"]) + _total(position["other_assets"])
    total_liabilities = current_liabilities + _total(position["long_term_liabilities"])

    by_number = {row.account_number: row.balance for row in balance_rows}
    receivable = by_number.get(accounts.accounts_receivable, ZERO)
    quick_assets = receivable + sum(
        (by_number.get(n, ZERO) for n in accounts.cash_accounts), ZERO
    )

    liquidity = LiquidityKpis(
        current_assets=round_money(current_assets),
        current_liabilities=round_money(current_liabilities),
        quick_assets=round_money(quick_assets),
        current_ratio=_ratio(current_assets, current_liabilities),
        quick_ratio=_ratio(quick_assets, current_liabilities),
    )

    daily_revenue = revenue / max(1, days_elapsed)
    dso = receivable / daily_revenue if daily_revenue > ZERO else ZERO
    efficiency = EfficiencyKpis(
        accounts_receivable=round_money(receivable),
        days_sales_outstanding=int(dso.quantize(Decimal("1"), rounding=ROUND_HALF_UP)),
    )

    equity = total_assets - total_liabilities
    leverage = LeverageKpis(
        total_assets=round_money(total_assets),
        total_liabilities=round_money(total_liabilities),
        total_equity=round_money(equity),
        debt_to_equity=_ratio(total_liabilities, equity),
    )

    trend = build_trend(monthly_rows)
    return FinancialKpisReport(
        metadata=metadata,
        profitability=profitability,
        liquidity=liquidity,
        efficiency=efficiency,
        leverage=leverage,
        trend=tuple(trend),
        forecast=forecast_revenue(trend, fallback=revenue),
        insights=tuple(derive_insights(profitability, liquidity, efficiency, trend)),
    )


# =========================================================================
# 2. ANOMALIES
# =========================================================================


def _z_severity(z: Decimal) -> AnomalySeverity:
    if abs(z) > Decimal("3.5"):
        return AnomalySeverity.HIGH
    if abs(z) > 3:
        return AnomalySeverity.MEDIUM
    return AnomalySeverity.LOW


def _size_severity(amount: Decimal, threshold: Decimal) -> AnomalySeverity:
    if amount > threshold * 5:
        return AnomalySeverity.HIGH
    if amount > threshold * Decimal("2.5"):
        return AnomalySeverity.MEDIUM
    return AnomalySeverity.LOW


def detect_anomalies(
    entries: list[EntryTotal],
    metadata: ReportMetadata,
    z_threshold: Decimal = Decimal("2.5"),
    min_sample: int = 5,
    large_entry_threshold: Decimal = Decimal("10000"),
) -> AnomalyReport:
    """
    Flag entries whose debit total is unusual.

    Two rules:

    * Statistical: within each source type with at least ``min_sample``
      entries, an entry more than ``z_threshold`` population standard
      deviations from the mean.
    * Size: a manual or adjustment entry above ``large_entry_threshold``
      that the statistical rule did not already flag.

    Results are ordered high, medium, low; ties keep the input order.
    """
    by_source: dict[str, list[Decimal]] = defaultdict(list)
    for entry in entries:
        by_source[entry.source_type].append(entry.total_debits)

    stats: dict[str, tuple[Decimal, Decimal]] = {}
    for source_type, values in by_source.items():
        if len(values) < min_sample:
            continue
        mean = sum(values, ZERO) / len(values)
        variance = sum(((v - mean) ** 2 for v in values), ZERO) / len(values)
        stats[source_type] = (mean, variance.sqrt())

    anomalies: list[Anomaly] = []
    flagged = set()
    for entry in entries:
        if entry.source_type not in stats:
            continue
        mean, stddev = stats[entry.source_type]
        if stddev == ZERO:
            continue
        z = (entry.total_debits - mean) / stddev
        if abs(z) <= z_threshold:
            continue
        direction = "above" if z > 0 else "below"
        anomalies.append(
            Anomaly(
                journal_entry_id=entry.journal_entry_id,
                entry_number=entry.entry_number,
                entry_date=entry.entry_date,
                description=entry.description,
                source_type=entry.source_type,
                amount=round_money(entry.total_debits),
                reason=(
                    f"Amount is {abs(z):.1f} standard deviations {direction} average "
                    f"for {entry.source_type} entries"
                ),
                severity=_z_severity(z),
                z_score=round_money(z),
            )
        )
        flagged.add(entry.journal_entry_id)

    for entry in entries:
        if entry.source_type not in MANUAL_SOURCE_TYPES or entry.journal_entry_id in flagged:
            continue
        if entry.total_debits <= large_entry_threshold:
            continue
        anomalies.append(
            Anomaly(
                journal_entry_id=entry.journal_entry_id,
                entry_number=entry.entry_number,
                entry_date=entry.entry_date,
                description=entry.description,
                source_type=entry.source_type,
                amount=round_money(entry.total_debits),
                reason=f"Large manual/adjustment entry exceeds {large_entry_threshold:,.2f} threshold",
                severity=_size_severity(entry.total_debits, large_entry_threshold),
            )
        )

    anomalies.sort(key=lambda a: _SEVERITY_ORDER[a.severity])
    return AnomalyReport(
        metadata=metadata,
        anomalies=tuple(anomalies),
        entries_examined=len(entries),
    )


# =========================================================================
# 3. PROJECT PROFITABILITY
# =========================================================================


def build_project_profitability(
    activity: list[ProjectActivity],
    metadata: ReportMetadata,
    project_names: Mapping[str, str] | None = None,
) -> ProjectProfitabilityReport:
    """
    Revenue against labor cost per project.

    Projects with neither revenue nor labor cost are dropped.  Sorted by
    gross profit, highest first, then by project id.
    """
    project_names = project_names or {}
    lines = []
    for item in activity:
        if item.revenue <= ZERO and item.labor_cost <= ZERO:
            continue
        gross_profit = item.revenue - item.labor_cost
        lines.append(
            ProjectProfitabilityLine(
                project_id=item.project_id,
                project_name=project_names.get(item.project_id, UNKNOWN_PROJECT),
                revenue=round_money(item.revenue),
                labor_cost=round_money(item.labor_cost),
                gross_profit=round_money(gross_profit),
                margin=_percent(gross_profit, item.revenue),
                invoice_count=item.invoice_count,
            )
        )
    lines.sort(key=lambda line: (-line.gross_profit, line.project_id))

    revenue = sum((line.revenue for line in lines), ZERO)
    labor = sum((line.labor_cost for line in lines), ZERO)
    gross_profit = revenue - labor
    return ProjectProfitabilityReport(
        metadata=metadata,
        projects=tuple(lines),
        total_revenue=round_money(revenue),
        total_labor_cost=round_money(labor),
        total_gross_profit=round_money(gross_profit),
        total_margin=_percent(gross_profit, revenue),
    )
