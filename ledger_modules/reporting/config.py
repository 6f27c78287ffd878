"""
Reporting Configuration Schema.

Statements classify accounts by sub-type (Current Asset, COGS, ...); the
cash flow statement additionally singles out a few accounts by number
(cash, receivables, payables, accruals, deferred revenue).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Self

from ledger_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from ledger_config import LedgerConfiguration

logger = get_logger("modules.reporting.config")


@dataclass
class CashFlowAccounts:
    """Account numbers the cash flow statement treats individually."""

    cash_accounts: tuple[str, ...] = ("1000", "1010", "1020")
    accounts_receivable: str = "1100"
    accounts_payable: str = "2000"
    accrued_expense_accounts: tuple[str, ...] = ("2100", "2110", "2120")
    deferred_revenue: str = "2200"

    def __post_init__(self):
        if not self.cash_accounts:
            raise ValueError("cash_accounts cannot be empty")
        overlap = set(self.cash_accounts) & (
            {self.accounts_receivable, self.accounts_payable, self.deferred_revenue}
            | set(self.accrued_expense_accounts)
        )
        if overlap:
            raise ValueError(
                f"cash accounts cannot double as working-capital accounts: {sorted(overlap)}"
            )


@dataclass
class ReportingConfig:
    """
    Configuration schema for the reporting module.
    """

    accounts: CashFlowAccounts = field(default_factory=CashFlowAccounts)

    # Entity name shown on reports
    entity_name: str = "Company"

    # Whether to include accounts whose balance nets to zero
    include_zero_balances: bool = False

    drilldown_default_limit: int = 50
    drilldown_max_limit: int = 200

    # Analytics
    kpi_trend_months: int = 6
    anomaly_lookback_days: int = 90
    anomaly_entry_limit: int = 500
    anomaly_z_threshold: Decimal = Decimal("2.5")
    anomaly_min_sample: int = 5
    large_entry_threshold: Decimal = Decimal("10000")

    def __post_init__(self):
        self.anomaly_z_threshold = Decimal(str(self.anomaly_z_threshold))
        self.large_entry_threshold = Decimal(str(self.large_entry_threshold))
        if not self.entity_name or not self.entity_name.strip():
            raise ValueError("entity_name cannot be empty")
        if self.drilldown_max_limit < 1:
            raise ValueError("drilldown_max_limit must be positive")
        if not 1 <= self.drilldown_default_limit <= self.drilldown_max_limit:
            raise ValueError(
                f"drilldown_default_limit ({self.drilldown_default_limit}) must be "
                f"between 1 and drilldown_max_limit ({self.drilldown_max_limit})"
            )
        for name in ("kpi_trend_months", "anomaly_lookback_days", "anomaly_entry_limit", "anomaly_min_sample"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be positive")
        if self.anomaly_z_threshold <= 0:
            raise ValueError("anomaly_z_threshold must be positive")
        if self.large_entry_threshold <= 0:
            raise ValueError("large_entry_threshold must be positive")

    def clamp_drilldown_limit(self, limit: int | None) -> int:
        if limit is None:
            return self.drilldown_default_limit
        return max(1, min(int(limit), self.drilldown_max_limit))

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("reporting_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary."""
        data = dict(data)
        if "accounts" in data and isinstance(data["accounts"], dict):
            accounts = dict(data["accounts"])
            for key in ("cash_accounts", "accrued_expense_accounts"):
                if key in accounts:
                    accounts[key] = tuple(accounts[key])
            data["accounts"] = CashFlowAccounts(**accounts)
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

    @classmethod
    def from_ledger_config(cls, config: LedgerConfiguration) -> Self:
        """Create config from the active ledger configuration."""
        reporting = config.reporting
        return cls(
            accounts=CashFlowAccounts(
                cash_accounts=reporting.cash_accounts,
                accounts_receivable=reporting.accounts_receivable,
                accounts_payable=reporting.accounts_payable,
                accrued_expense_accounts=reporting.accrued_expense_accounts,
                deferred_revenue=reporting.deferred_revenue,
            ),
            entity_name=config.entity_name,
            drilldown_default_limit=config.paging.drilldown_default_limit,
            drilldown_max_limit=config.paging.drilldown_max_limit,
        )
