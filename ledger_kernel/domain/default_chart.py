"""
Default chart of accounts template.

A small-services-business skeleton: cash and receivables, fixed assets,
payables and accruals, owner equity, service/subscription revenue, cost of
services, operating and other expenses.  Normal balances are not listed;
they follow from the account type.

Contra accounts (1150 Allowance for Doubtful Accounts, 1550 Accumulated
Depreciation) are carried as plain assets, so their balances report as
negative debit-normal amounts.
"""

from dataclasses import dataclass

from ledger_kernel.models.account import AccountSubType as S
from ledger_kernel.models.account import AccountType as T


@dataclass(frozen=True)
class ChartTemplateEntry:
    account_number: str
    name: str
    account_type: T
    sub_type: S
    description: str = ""


DEFAULT_CHART: tuple[ChartTemplateEntry, ...] = (
    # Assets
    ChartTemplateEntry("1000", "Cash and Cash Equivalents", T.ASSET, S.CURRENT_ASSET, "Cash on hand and in bank"),
    ChartTemplateEntry("1010", "Checking Account", T.ASSET, S.CURRENT_ASSET, "Primary operating account"),
    ChartTemplateEntry("1020", "Savings Account", T.ASSET, S.CURRENT_ASSET, "Reserve funds"),
    ChartTemplateEntry("1100", "Accounts Receivable", T.ASSET, S.CURRENT_ASSET, "Amounts owed by customers"),
    ChartTemplateEntry("1150", "Allowance for Doubtful Accounts", T.ASSET, S.CURRENT_ASSET, "Contra-asset for bad debts"),
    ChartTemplateEntry("1200", "Prepaid Expenses", T.ASSET, S.CURRENT_ASSET, "Expenses paid in advance"),
    ChartTemplateEntry("1500", "Property and Equipment", T.ASSET, S.FIXED_ASSET, "Fixed assets at cost"),
    ChartTemplateEntry("1510", "Computer Equipment", T.ASSET, S.FIXED_ASSET, "Computers and peripherals"),
    ChartTemplateEntry("1520", "Furniture and Fixtures", T.ASSET, S.FIXED_ASSET, "Office furniture"),
    ChartTemplateEntry("1550", "Accumulated Depreciation", T.ASSET, S.FIXED_ASSET, "Contra-asset for depreciation"),
    ChartTemplateEntry("1600", "Intangible Assets", T.ASSET, S.NON_CURRENT_ASSET, "Software, patents, trademarks"),
    # Liabilities
    ChartTemplateEntry("2000", "Accounts Payable", T.LIABILITY, S.CURRENT_LIABILITY, "Amounts owed to vendors"),
    ChartTemplateEntry("2100", "Accrued Expenses", T.LIABILITY, S.CURRENT_LIABILITY, "Expenses incurred but not paid"),
    ChartTemplateEntry("2110", "Accrued Wages", T.LIABILITY, S.CURRENT_LIABILITY, "Wages earned but not paid"),
    ChartTemplateEntry("2120", "Accrued Benefits", T.LIABILITY, S.CURRENT_LIABILITY, "Benefits earned but not paid"),
    ChartTemplateEntry("2200", "Deferred Revenue", T.LIABILITY, S.CURRENT_LIABILITY, "Payments received for future services"),
    ChartTemplateEntry("2300", "Sales Tax Payable", T.LIABILITY, S.CURRENT_LIABILITY, "Sales tax collected"),
    ChartTemplateEntry("2400", "Payroll Tax Payable", T.LIABILITY, S.CURRENT_LIABILITY, "Payroll taxes withheld"),
    ChartTemplateEntry("2500", "Short-Term Debt", T.LIABILITY, S.CURRENT_LIABILITY, "Loans due within one year"),
    ChartTemplateEntry("2600", "Long-Term Debt", T.LIABILITY, S.LONG_TERM_LIABILITY, "Loans due after one year"),
    # Equity
    ChartTemplateEntry("3000", "Common Stock", T.EQUITY, S.EQUITY, "Issued share capital"),
    ChartTemplateEntry("3100", "Additional Paid-In Capital", T.EQUITY, S.EQUITY, "Capital above par value"),
    ChartTemplateEntry("3200", "Retained Earnings", T.EQUITY, S.RETAINED_EARNINGS, "Accumulated profits"),
    ChartTemplateEntry("3300", "Owner Draws", T.EQUITY, S.EQUITY, "Distributions to owners"),
    # Revenue
    ChartTemplateEntry("4000", "Service Revenue", T.REVENUE, S.OPERATING_REVENUE, "Revenue from services"),
    ChartTemplateEntry("4100", "Subscription Revenue", T.REVENUE, S.OPERATING_REVENUE, "Recurring subscription revenue"),
    ChartTemplateEntry("4200", "Product Revenue", T.REVENUE, S.OPERATING_REVENUE, "Revenue from product sales"),
    ChartTemplateEntry("4300", "Consulting Revenue", T.REVENUE, S.OPERATING_REVENUE, "Consulting engagements"),
    ChartTemplateEntry("4400", "License Revenue", T.REVENUE, S.OPERATING_REVENUE, "Software licensing"),
    ChartTemplateEntry("4900", "Other Revenue", T.REVENUE, S.OTHER_REVENUE, "Non-operating revenue"),
    ChartTemplateEntry("4910", "Interest Income", T.REVENUE, S.OTHER_REVENUE, "Interest earned"),
    # Cost of services
    ChartTemplateEntry("5000", "Cost of Services", T.EXPENSE, S.COGS, "Direct cost of delivering services"),
    ChartTemplateEntry("5100", "Direct Labor", T.EXPENSE, S.COGS, "Billable labor cost"),
    ChartTemplateEntry("5200", "Contractor Costs", T.EXPENSE, S.COGS, "Subcontractor fees"),
    ChartTemplateEntry("5300", "Hosting and Infrastructure", T.EXPENSE, S.COGS, "Cloud hosting"),
    ChartTemplateEntry("5400", "Third-Party Services", T.EXPENSE, S.COGS, "Third-party service costs"),
    ChartTemplateEntry("5500", "Payment Processing Fees", T.EXPENSE, S.COGS, "Card and ACH fees"),
    # Operating expenses
    ChartTemplateEntry("6000", "Salaries and Wages", T.EXPENSE, S.OPERATING_EXPENSE, "Employee compensation"),
    ChartTemplateEntry("6050", "Non-Billable Labor", T.EXPENSE, S.OPERATING_EXPENSE, "Internal, non-billable time"),
    ChartTemplateEntry("6100", "Payroll Taxes", T.EXPENSE, S.OPERATING_EXPENSE, "Employer payroll taxes"),
    ChartTemplateEntry("6150", "Employee Benefits", T.EXPENSE, S.OPERATING_EXPENSE, "Health and retirement benefits"),
    ChartTemplateEntry("6200", "Rent Expense", T.EXPENSE, S.OPERATING_EXPENSE, "Office rent"),
    ChartTemplateEntry("6250", "Utilities", T.EXPENSE, S.OPERATING_EXPENSE, "Power, water, internet"),
    ChartTemplateEntry("6300", "Software Subscriptions", T.EXPENSE, S.OPERATING_EXPENSE, "SaaS tools"),
    ChartTemplateEntry("6400", "Marketing and Advertising", T.EXPENSE, S.OPERATING_EXPENSE, "Campaigns and ads"),
    ChartTemplateEntry("6500", "Professional Services", T.EXPENSE, S.OPERATING_EXPENSE, "Legal and accounting"),
    ChartTemplateEntry("6600", "Travel and Entertainment", T.EXPENSE, S.OPERATING_EXPENSE, "Travel and meals"),
    ChartTemplateEntry("6700", "Insurance", T.EXPENSE, S.OPERATING_EXPENSE, "Business insurance"),
    ChartTemplateEntry("6800", "Office Supplies", T.EXPENSE, S.OPERATING_EXPENSE, "Consumables"),
    ChartTemplateEntry("6900", "Depreciation Expense", T.EXPENSE, S.OPERATING_EXPENSE, "Depreciation of fixed assets"),
    ChartTemplateEntry("6950", "Amortization Expense", T.EXPENSE, S.OPERATING_EXPENSE, "Amortization of intangibles"),
    # Other expenses
    ChartTemplateEntry("7000", "Interest Expense", T.EXPENSE, S.OTHER_EXPENSE, "Interest on debt"),
    ChartTemplateEntry("7100", "Bank Fees", T.EXPENSE, S.OTHER_EXPENSE, "Bank service charges"),
    ChartTemplateEntry("7200", "Bad Debt Expense", T.EXPENSE, S.OTHER_EXPENSE, "Uncollectible receivables"),
    ChartTemplateEntry("7900", "Income Tax Expense", T.EXPENSE, S.OTHER_EXPENSE, "Corporate income tax"),
)
