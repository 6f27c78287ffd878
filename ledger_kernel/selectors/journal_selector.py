"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only access to journal entries and their lines --
    lookups by id, number and source, and the paged entry listing.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/dtos.py and selectors/base.py.

Invariants enforced:
    - Returns JournalEntryInfo DTOs, never ORM rows.
    - Page size is clamped to 1..500.

Failure modes:
    - Returns None when an entry does not exist; ``require_entry`` raises
      EntryNotFoundError for callers that need one.
"""

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import JournalEntryInfo
from ledger_kernel.exceptions import EntryNotFoundError, InvalidInputError
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryStatus,
    SourceType,
)
from ledger_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


def clamp_limit(limit: int | None, default: int = DEFAULT_PAGE_SIZE, maximum: int = MAX_PAGE_SIZE) -> int:
    if limit is None:
        return default
    return max(1, min(int(limit), maximum))


@dataclass(frozen=True)
class EntryPage:
    """One page of journal entries plus the unpaged total."""

    entries: tuple[JournalEntryInfo, ...]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.entries) < self.total


class JournalSelector(BaseSelector[JournalEntry]):
    """Selector for journal entry queries.

    Page sizes come from the caller (``paging`` in the ledger configuration).
    """

    def __init__(
        self,
        session: Session,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ):
        super().__init__(session)
        if not 1 <= default_page_size <= max_page_size:
            raise InvalidInputError(
                "default_page_size", f"must be between 1 and {max_page_size}, got {default_page_size}"
            )
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size

    def get_entry(self, entry_id: UUID) -> JournalEntryInfo | None:
        entry = self.session.get(JournalEntry, entry_id)
        return JournalEntryInfo.from_model(entry) if entry else None

    def require_entry(self, entry_id: UUID) -> JournalEntryInfo:
        entry = self.get_entry(entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        return entry

    def get_by_number(self, entry_number: int) -> JournalEntryInfo | None:
        entry = self.session.execute(
            select(JournalEntry).where(JournalEntry.entry_number == entry_number)
        ).scalar_one_or_none()
        return JournalEntryInfo.from_model(entry) if entry else None

    def find_by_source(
        self,
        source_type: SourceType | str,
        source_id: str,
    ) -> list[JournalEntryInfo]:
        """Entries recorded for an external source, oldest first."""
        result = self.session.execute(
            select(JournalEntry)
            .where(
                JournalEntry.source_type == SourceType(source_type).value,
                JournalEntry.source_id == source_id,
            )
            .order_by(JournalEntry.entry_number)
        )
        return [JournalEntryInfo.from_model(e) for e in result.scalars()]

    def list_entries(
        self,
        limit: int | None = None,
        offset: int = 0,
        status: JournalEntryStatus | str | None = None,
        source_type: SourceType | str | None = None,
        period_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> EntryPage:
        """
        Page through entries, most recent entry number first.

        Args:
            limit: Page size, clamped to 1..max_page_size (default
                default_page_size).
            offset: Rows to skip; negative values count as 0.
            status: Filter on entry status.
            source_type: Filter on source type.
            period_id: Filter on period.
            start_date: Inclusive lower bound on entry date.
            end_date: Inclusive upper bound on entry date.
        """
        limit = clamp_limit(limit, self._default_page_size, self._max_page_size)
        offset = max(0, offset or 0)

        filters = []
        if status is not None:
            filters.append(JournalEntry.status == JournalEntryStatus(status).value)
        if source_type is not None:
            filters.append(JournalEntry.source_type == SourceType(source_type).value)
        if period_id is not None:
            filters.append(JournalEntry.period_id == period_id)
        if start_date is not None:
            filters.append(JournalEntry.entry_date >= start_date)
        if end_date is not None:
            filters.append(JournalEntry.entry_date <= end_date)

        total = self.session.execute(
            select(func.count(JournalEntry.id)).where(*filters)
        ).scalar_one()

        rows = self.session.execute(
            select(JournalEntry)
            .where(*filters)
            .order_by(JournalEntry.entry_number.desc())
            .limit(limit)
            .offset(offset)
        ).scalars()

        return EntryPage(
            entries=tuple(JournalEntryInfo.from_model(e) for e in rows),
            total=total,
            limit=limit,
            offset=offset,
        )
