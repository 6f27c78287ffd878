"""
Expense Sub-ledger Configuration Schema.

Defines the accounts the expense lifecycle posts against and the expense
numbering scheme.  Actual values are loaded from the ledger
configuration at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Self

from ledger_kernel.logging_config import get_logger
from ledger_modules.expense.models import DEFAULT_EXPENSE_ACCOUNT

if TYPE_CHECKING:
    from ledger_config import LedgerConfiguration

logger = get_logger("modules.expense.config")


@dataclass
class ExpenseConfig:
    """
    Configuration schema for the expense sub-ledger.

    Field defaults match the default chart of accounts.
    """

    accounts_payable: str = "2000"
    cash: str = "1010"
    tax: str = "2300"

    # Lines with neither an account nor a known category post here
    default_expense_account: str = DEFAULT_EXPENSE_ACCOUNT

    number_start: int = 1001
    number_prefix: str = "EXP-"

    entry_number_start: int = 10001

    default_page_size: int = 50
    max_page_size: int = 500

    def __post_init__(self):
        for name in ("accounts_payable", "cash", "tax", "default_expense_account"):
            value = getattr(self, name)
            if not value or not str(value).strip():
                raise ValueError(f"{name} cannot be empty")
        if self.accounts_payable == self.cash:
            raise ValueError("accounts_payable and cash must be different accounts")
        if self.number_start < 1:
            raise ValueError(f"number_start must be positive, got {self.number_start}")
        if self.entry_number_start < 1:
            raise ValueError(f"entry_number_start must be positive, got {self.entry_number_start}")
        if not 1 <= self.default_page_size <= self.max_page_size:
            raise ValueError("default_page_size must be between 1 and max_page_size")

    def format_number(self, value: int) -> str:
        return f"{self.number_prefix}{value}"

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("expense_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary."""
        logger.info(
            "expense_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

    @classmethod
    def from_ledger_config(cls, config: LedgerConfiguration) -> Self:
        """Create config from the active ledger configuration."""
        return cls(
            accounts_payable=config.expense.accounts_payable,
            cash=config.expense.cash,
            tax=config.expense.tax,
            number_start=config.numbering.expense_number_start,
            number_prefix=config.numbering.expense_number_prefix,
            entry_number_start=config.numbering.entry_number_start,
            default_page_size=config.paging.default_page_size,
            max_page_size=config.paging.max_page_size,
        )
