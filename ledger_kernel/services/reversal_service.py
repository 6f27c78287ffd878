"""
ReversalService -- full reversal of a posted journal entry.

Responsibility:
    Validates reversal preconditions, posts a mirror entry through
    JournalWriter (debits and credits swapped) and links the pair.

Architecture position:
    Kernel > Services -- imperative shell.  Consumes JournalWriter and
    PeriodService.  Called by the API layer and by the expense module's
    void workflow.

Invariants enforced:
    - Only POSTED entries can be reversed, and only once.  The original
      row is locked (SELECT ... FOR UPDATE) so two concurrent reversals
      serialize and the loser sees REVERSED.
    - The reversal is dated at the clock's date by default; its period
      must be OPEN.  A reversal dated before the original is rejected.
    - Original lines are never edited; the only mutation on the original
      is the POSTED -> REVERSED status flip plus reversed_by_id.

Failure modes:
    - EntryNotFoundError: Unknown entry id.
    - AlreadyReversedError: The entry was reversed before.
    - InvalidStateTransitionError: The entry is still a DRAFT.
    - PeriodNotFoundError / PeriodClosedError: reversal date not postable.

Audit relevance:
    reversal_completed is logged with both entry numbers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import JournalEntryInfo, LineSpec
from ledger_kernel.exceptions import (
    AlreadyReversedError,
    EntryNotFoundError,
    InvalidInputError,
    InvalidStateTransitionError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, SourceType
from ledger_kernel.services.journal_writer import JournalWriter

logger = get_logger("services.reversal")


@dataclass(frozen=True)
class ReversalResult:
    """Immutable result of a successful reversal."""

    original_entry_id: UUID
    reversal_entry_id: UUID
    reversal_entry_number: int
    reversal_date: date
    reversal: JournalEntryInfo


class ReversalService:
    """
    Reverses posted journal entries.

    Contract:
        ``reverse_entry()`` posts one new entry whose lines mirror the
        original's with debit and credit exchanged, so the pair nets to
        zero in every balance.

    Non-goals:
        - Does NOT call session.commit() -- caller controls boundaries.
        - Does NOT support partial (line-level) reversals.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        journal_writer: JournalWriter | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._journal_writer = journal_writer or JournalWriter(session, self._clock)

    def _load_and_validate(self, entry_id: UUID) -> JournalEntry:
        """
        Load the original entry under a row lock and check it is reversible.

        Raises:
            EntryNotFoundError: Unknown ``entry_id``.
            AlreadyReversedError: Status is REVERSED.
            InvalidStateTransitionError: Status is not POSTED.
        """
        original = self._session.execute(
            select(JournalEntry)
            .where(JournalEntry.id == entry_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if original is None:
            raise EntryNotFoundError(str(entry_id))
        if original.is_reversed:
            raise AlreadyReversedError(
                str(entry_id),
                str(original.reversed_by_id) if original.reversed_by_id else None,
            )
        if not original.is_posted:
            raise InvalidStateTransitionError("journal_entry", original.status, "reverse")
        return original

    def reverse_entry(
        self,
        entry_id: UUID,
        actor_id: UUID,
        reversal_date: date | None = None,
    ) -> ReversalResult:
        """
        Reverse a posted entry in full.

        Postconditions:
            - A new POSTED entry with source_type REVERSAL, source_id equal to
              the original id and reversal_of_id pointing at the original.
            - The original is REVERSED with reversed_by_id set.

        Raises:
            EntryNotFoundError, AlreadyReversedError,
            InvalidStateTransitionError, PeriodNotFoundError,
            PeriodClosedError.
            InvalidInputError: ``reversal_date`` precedes the original entry date.
        """
        original = self._load_and_validate(entry_id)

        reversal_date = reversal_date or self._clock.today()
        if reversal_date < original.entry_date:
            raise InvalidInputError(
                "reversal_date",
                f"{reversal_date} precedes entry date {original.entry_date}",
            )

        mirrored = [
            LineSpec(
                account=line.account_id,
                debit=line.credit,
                credit=line.debit,
                description=line.description,
                department_id=line.department_id,
                project_id=line.project_id,
            )
            for line in sorted(original.lines, key=lambda ln: ln.line_seq)
        ]

        result = self._journal_writer.post_entry(
            entry_date=reversal_date,
            description=f"Reversal of JE #{original.entry_number}: {original.description}",
            lines=mirrored,
            actor_id=actor_id,
            source_type=SourceType.REVERSAL,
            source_id=str(original.id),
            reversal_of_id=original.id,
            allow_inactive=True,
        )
        reversal = result.entry

        original.status = JournalEntryStatus.REVERSED.value
        original.reversed_by_id = reversal.id
        original.updated_by_id = actor_id
        self._session.flush()

        logger.info(
            "reversal_completed",
            extra={
                "original_entry_number": original.entry_number,
                "reversal_entry_number": reversal.entry_number,
                "reversal_date": str(reversal_date),
                "actor_id": str(actor_id),
            },
        )
        return ReversalResult(
            original_entry_id=original.id,
            reversal_entry_id=reversal.id,
            reversal_entry_number=reversal.entry_number,
            reversal_date=reversal_date,
            reversal=reversal,
        )
