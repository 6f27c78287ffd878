"""
Auto-Posting Domain Models.

Batch outcomes returned by ``AutoPostService`` plus the invoice status
vocabulary the poster filters on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    PARTIAL = "partial"
    VOID = "void"


# Void invoices never reach the ledger.
POSTABLE_INVOICE_STATUSES = frozenset({
    InvoiceStatus.DRAFT.value,
    InvoiceStatus.SENT.value,
    InvoiceStatus.PAID.value,
    InvoiceStatus.PARTIAL.value,
})


@dataclass(frozen=True)
class AutoPostError:
    """Why one source record was not posted."""

    source_id: str
    code: str
    message: str


@dataclass(frozen=True)
class AutoPostResult:
    """
    Outcome of one auto-posting batch.

    ``skipped`` counts every record that did not produce a new entry:
    already posted, nothing to post, or failed.  Failures additionally
    appear in ``errors``.
    """

    posted: int = 0
    skipped: int = 0
    errors: tuple[AutoPostError, ...] = field(default_factory=tuple)

    @property
    def total(self) -> int:
        return self.posted + self.skipped

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def merge(self, other: AutoPostResult) -> AutoPostResult:
        return AutoPostResult(
            posted=self.posted + other.posted,
            skipped=self.skipped + other.skipped,
            errors=self.errors + other.errors,
        )

