"""
LedgerConfiguration schema.

The typed runtime view of ``defaults.yaml`` (or an override file).  The
loader parses YAML into these frozen dataclasses; modules read their
settings from them through ``from_ledger_config()`` constructors.

Sections:
  numbering   -- first entry / expense numbers
  paging      -- default and maximum page sizes
  autopost    -- account numbers and default hourly rate for auto-posting
  expense     -- AP, cash and tax accounts for the expense sub-ledger
  reporting   -- account numbers the statements single out
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class NumberingConfig:
    entry_number_start: int = 10001
    expense_number_start: int = 1001
    expense_number_prefix: str = "EXP-"


@dataclass(frozen=True)
class PagingConfig:
    default_page_size: int = 50
    max_page_size: int = 500
    drilldown_default_limit: int = 50
    drilldown_max_limit: int = 200


@dataclass(frozen=True)
class AutoPostAccounts:
    """Account numbers used by the auto-poster."""

    accounts_receivable: str = "1100"
    cash: str = "1010"
    service_revenue: str = "4000"
    subscription_revenue: str = "4100"
    deferred_revenue: str = "2200"
    direct_labor: str = "5100"
    non_billable_labor: str = "6050"
    accrued_wages: str = "2110"
    default_hourly_rate: Decimal = Decimal("75")


@dataclass(frozen=True)
class ExpenseAccounts:
    accounts_payable: str = "2000"
    cash: str = "1010"
    tax: str = "2300"


@dataclass(frozen=True)
class ReportingAccounts:
    """Account numbers the statements treat specially."""

    cash_accounts: tuple[str, ...] = ("1000", "1010", "1020")
    accounts_receivable: str = "1100"
    accounts_payable: str = "2000"
    accrued_expense_accounts: tuple[str, ...] = ("2100", "2110", "2120")
    deferred_revenue: str = "2200"


@dataclass(frozen=True)
class LedgerConfiguration:
    """Complete runtime configuration."""

    entity_name: str = "Company"
    numbering: NumberingConfig = field(default_factory=NumberingConfig)
    paging: PagingConfig = field(default_factory=PagingConfig)
    autopost: AutoPostAccounts = field(default_factory=AutoPostAccounts)
    expense: ExpenseAccounts = field(default_factory=ExpenseAccounts)
    reporting: ReportingAccounts = field(default_factory=ReportingAccounts)
    checksum: str = ""
    source_path: str | None = None
