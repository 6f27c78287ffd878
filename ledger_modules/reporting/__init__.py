"""
Financial Reporting Module (``ledger_modules.reporting``).

Responsibility
--------------
Read-only module that compiles statements from the ledger: trial
balance, multi-step income statement, classified balance sheet,
indirect-method cash flow statement and account drill-down.  Also
derives analytics: financial KPIs, anomalous entries and per-project
profitability.

Architecture position
---------------------
**Modules layer** -- pure read-only service.  Reporting does NOT post
journal entries.  Statement logic lives in pure functions
(``statements.py``, ``analytics.py``); ``ReportingService`` only loads
rows and metadata.

Invariants enforced
-------------------
* No journal entries are created by this module.
* Statements derive entirely from journal lines; there are no stored
  balances.
"""

from ledger_modules.reporting.config import CashFlowAccounts, ReportingConfig
from ledger_modules.reporting.models import (
    AccountDrilldownReport,
    Anomaly,
    AnomalyReport,
    AnomalySeverity,
    BalanceSheetReport,
    CashFlowLineItem,
    CashFlowSection,
    CashFlowStatementReport,
    DrilldownLine,
    FinancialKpisReport,
    IncomeStatementReport,
    Insight,
    InsightKind,
    ProjectProfitabilityLine,
    ProjectProfitabilityReport,
    ReportMetadata,
    ReportType,
    StatementSection,
    TrialBalanceLineItem,
    TrialBalanceReport,
)
from ledger_modules.reporting.service import ReportingService

__all__ = [
    "AccountDrilldownReport",
    "Anomaly",
    "AnomalyReport",
    "AnomalySeverity",
    "BalanceSheetReport",
    "CashFlowAccounts",
    "CashFlowLineItem",
    "CashFlowSection",
    "CashFlowStatementReport",
    "DrilldownLine",
    "FinancialKpisReport",
    "IncomeStatementReport",
    "Insight",
    "InsightKind",
    "ProjectProfitabilityLine",
    "ProjectProfitabilityReport",
    "ReportMetadata",
    "ReportType",
    "ReportingConfig",
    "ReportingService",
    "StatementSection",
    "TrialBalanceLineItem",
    "TrialBalanceReport",
]
