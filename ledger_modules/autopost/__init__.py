"""
Auto-Posting Module (``ledger_modules.autopost``).

Responsibility
--------------
Generates journal entries from business records: invoices, invoice
payments, time entries and subscription renewals, plus period-by-period
recognition of deferred subscription revenue and one-off invoice
adjustments and refunds.

Posting rules (default accounts)
--------------------------------
* Invoice       -- DR 1100 Accounts Receivable / CR 4000 Service Revenue
* Payment       -- DR 1010 Cash / CR 1100 Accounts Receivable
* Time entry    -- DR 5100 Direct Labor or 6050 Non-Billable Labor /
                   CR 2110 Accrued Wages
* Renewal       -- DR 1100 Accounts Receivable / CR 2200 Deferred Revenue
* Recognition   -- DR 2200 Deferred Revenue / CR 4100 Subscription Revenue
* Adjustment    -- DR 1100 / CR 4000 for an increase, reversed for a decrease
* Refund        -- DR 4000 Service Revenue / CR 1010 Cash
"""

from ledger_modules.autopost.config import AutoPostAccountMap, AutoPostConfig
from ledger_modules.autopost.models import (
    POSTABLE_INVOICE_STATUSES,
    AutoPostError,
    AutoPostResult,
    InvoiceStatus,
)
from ledger_modules.autopost.orm import (
    InvoiceModel,
    InvoicePaymentModel,
    RenewalModel,
    TimeEntryModel,
)
from ledger_modules.autopost.service import AutoPostService, revenue_recognition_source_id

__all__ = [
    "AutoPostAccountMap",
    "AutoPostConfig",
    "AutoPostError",
    "AutoPostResult",
    "AutoPostService",
    "InvoiceModel",
    "InvoicePaymentModel",
    "InvoiceStatus",
    "POSTABLE_INVOICE_STATUSES",
    "RenewalModel",
    "TimeEntryModel",
    "revenue_recognition_source_id",
]
