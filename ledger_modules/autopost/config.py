"""
Auto-Posting Configuration Schema.

Maps each kind of source record to the accounts it posts against.
Account numbers must exist in the chart; a missing account makes the
affected records fail individually rather than aborting the batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import Decimal
from typing import TYPE_CHECKING, Self

from ledger_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from ledger_config import LedgerConfiguration

logger = get_logger("modules.autopost.config")


@dataclass
class AutoPostAccountMap:
    """Account numbers used by each posting rule."""

    accounts_receivable: str = "1100"
    cash: str = "1010"
    service_revenue: str = "4000"
    subscription_revenue: str = "4100"
    deferred_revenue: str = "2200"
    direct_labor: str = "5100"
    non_billable_labor: str = "6050"
    accrued_wages: str = "2110"

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not value or not str(value).strip():
                raise ValueError(f"{f.name} account number cannot be empty")


@dataclass
class AutoPostConfig:
    """
    Configuration schema for the auto-posting module.
    """

    accounts: AutoPostAccountMap = field(default_factory=AutoPostAccountMap)

    # Rate applied to time entries without their own rate
    default_hourly_rate: Decimal = Decimal("75")

    # First journal entry number if the counter does not exist yet
    entry_number_start: int = 10001

    def __post_init__(self):
        self.default_hourly_rate = Decimal(str(self.default_hourly_rate))
        if self.default_hourly_rate <= 0:
            raise ValueError("default_hourly_rate must be positive")
        if self.entry_number_start < 1:
            raise ValueError(f"entry_number_start must be positive, got {self.entry_number_start}")

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("autopost_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary."""
        data = dict(data)
        if "accounts" in data and isinstance(data["accounts"], dict):
            data["accounts"] = AutoPostAccountMap(**data["accounts"])
        logger.info(
            "autopost_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

    @classmethod
    def from_ledger_config(cls, config: LedgerConfiguration) -> Self:
        """Create config from the active ledger configuration."""
        autopost = config.autopost
        return cls(
            accounts=AutoPostAccountMap(
                accounts_receivable=autopost.accounts_receivable,
                cash=autopost.cash,
                service_revenue=autopost.service_revenue,
                subscription_revenue=autopost.subscription_revenue,
                deferred_revenue=autopost.deferred_revenue,
                direct_labor=autopost.direct_labor,
                non_billable_labor=autopost.non_billable_labor,
                accrued_wages=autopost.accrued_wages,
            ),
            default_hourly_rate=autopost.default_hourly_rate,
            entry_number_start=config.numbering.entry_number_start,
        )
