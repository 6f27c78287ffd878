"""
JournalWriter -- atomic journal posting service.

Responsibility:
    Turns a list of LineSpec (expressed as account UUIDs or account numbers)
    into a persisted, numbered, POSTED JournalEntry with its JournalLines.
    Handles zero-line filtering, account resolution, balance validation,
    period enforcement, idempotency and sequence assignment.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by the API layer for manual entries, by ReversalService, and by
    the auto-post and expense modules.  Delegates number allocation to
    SequenceService and period checks to PeriodService.

Invariants enforced:
    - At least two non-zero lines; no negative amounts.
    - Every referenced account exists and is active.
    - Debits equal credits within 0.01.
    - The entry date falls in an OPEN period, re-checked under a row lock
      inside the posting transaction.
    - At most one entry per (source_type, source_id) for keyed sources,
      backed by the uq_journal_source_key constraint.
    - Entry numbers come from the locked sequence counter, and only after
      every validation passed, so successful posts leave no gaps.

Failure modes:
    - InsufficientLinesError, NegativeAmountError, InvalidAccountError,
      InactiveAccountError, UnbalancedEntryError (validation).
    - PeriodNotFoundError, PeriodClosedError (period).
    - sqlalchemy.exc.* for storage failures, propagated unchanged.

Audit relevance:
    journal_write_started / journal_entry_created / journal_write_completed
    are logged with the entry number, source and duration.

Non-goals:
    - Does NOT manage the transaction boundary (caller's responsibility).
    - Does NOT cache balances; balances are always derived from lines.
"""

import time
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO, is_within_tolerance
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import JournalEntryInfo, LineSpec
from ledger_kernel.exceptions import (
    InactiveAccountError,
    InsufficientLinesError,
    InvalidInputError,
    NegativeAmountError,
    UnbalancedEntryError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
    SourceType,
    make_source_key,
)
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.journal_writer")

DEFAULT_ENTRY_NUMBER_START = 10001


class WriteStatus(str, Enum):
    """Status of a write operation."""

    WRITTEN = "written"
    ALREADY_EXISTS = "already_exists"


@dataclass(frozen=True)
class JournalWriteResult:
    """
    Result of JournalWriter.post_entry().

    Validation failures raise; a result is only returned when an entry
    exists afterwards, either freshly written or found by source key.
    """

    status: WriteStatus
    entry: JournalEntryInfo

    @classmethod
    def written(cls, entry: JournalEntryInfo) -> "JournalWriteResult":
        return cls(status=WriteStatus.WRITTEN, entry=entry)

    @classmethod
    def already_exists(cls, entry: JournalEntryInfo) -> "JournalWriteResult":
        """Idempotent success: the source was posted before."""
        return cls(status=WriteStatus.ALREADY_EXISTS, entry=entry)

    @property
    def is_new(self) -> bool:
        return self.status == WriteStatus.WRITTEN

    @property
    def entry_id(self) -> UUID:
        return self.entry.id


class JournalWriter:
    """
    Posts balanced journal entries.

    Contract:
        ``post_entry()`` either raises before touching the ledger or leaves
        exactly one POSTED entry for the request in the session.

    Guarantees:
        - A request that fails validation consumes no entry number.
        - Does NOT call ``session.commit()``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        entry_number_start: int = DEFAULT_ENTRY_NUMBER_START,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._entry_number_start = entry_number_start
        self._accounts = AccountService(session)
        self._periods = PeriodService(session, self._clock)
        self._sequence = SequenceService(session)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _prepare_lines(lines: Iterable[LineSpec]) -> list[LineSpec]:
        """Drop zero lines and reject negative amounts."""
        kept: list[LineSpec] = []
        for index, line in enumerate(lines):
            if line.debit < ZERO:
                raise NegativeAmountError(index, str(line.debit))
            if line.credit < ZERO:
                raise NegativeAmountError(index, str(line.credit))
            if not line.is_zero:
                kept.append(line)
        if len(kept) < 2:
            raise InsufficientLinesError(len(kept))
        return kept

    def _resolve_accounts(self, lines: list[LineSpec], allow_inactive: bool = False) -> list[Account]:
        accounts = []
        for line in lines:
            account = self._accounts.resolve(line.account)
            if not account.is_active and not allow_inactive:
                raise InactiveAccountError(account.account_number)
            accounts.append(account)
        return accounts

    @staticmethod
    def _totals(lines: list[LineSpec]) -> tuple[Decimal, Decimal]:
        debits = sum((line.debit for line in lines), ZERO)
        credits = sum((line.credit for line in lines), ZERO)
        return debits, credits

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _find_by_source_key(self, source_key: str) -> JournalEntry | None:
        return self._session.execute(
            select(JournalEntry).where(JournalEntry.source_key == source_key)
        ).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def post_entry(
        self,
        entry_date: date,
        description: str,
        lines: Iterable[LineSpec],
        actor_id: UUID,
        source_type: SourceType | str = SourceType.MANUAL,
        source_id: str | None = None,
        reversal_of_id: UUID | None = None,
        allow_inactive: bool = False,
    ) -> JournalWriteResult:
        """
        Validate and post a journal entry.

        Preconditions:
            - Called inside an active transaction on ``session``.

        Postconditions:
            - On WRITTEN: one POSTED entry with a fresh entry number and one
              line per non-zero LineSpec, in request order.
            - On ALREADY_EXISTS: the ledger is unchanged; the result carries
              the entry previously posted for the same source.

        Raises:
            InsufficientLinesError: Fewer than two non-zero lines.
            NegativeAmountError: A negative debit or credit.
            InvalidAccountError: Unknown account reference.
            InactiveAccountError: Account is deactivated.
            UnbalancedEntryError: |debits - credits| >= 0.01.
            PeriodNotFoundError: No period covers ``entry_date``.
            PeriodClosedError: Period is CLOSED or LOCKED.

        Args:
            entry_date: Accounting date; selects the period.
            description: Free-text memo.
            lines: Requested lines.
            actor_id: Who is posting.
            source_type: Origin of the entry.
            source_id: External record id; keys idempotency for keyed sources.
            reversal_of_id: Set by ReversalService only.
            allow_inactive: Accept deactivated accounts (reversals of
                history on retired accounts).
        """
        t0 = time.monotonic()
        try:
            source_type = SourceType(source_type)
        except ValueError:
            raise InvalidInputError("source_type", f"unknown source type {source_type!r}") from None
        source_key = make_source_key(source_type, source_id)

        logger.info(
            "journal_write_started",
            extra={
                "entry_date": str(entry_date),
                "source_type": source_type.value,
                "source_id": source_id,
            },
        )

        if source_key is not None:
            existing = self._find_by_source_key(source_key)
            if existing is not None:
                logger.info(
                    "journal_write_idempotent",
                    extra={"source_key": source_key, "entry_number": existing.entry_number},
                )
                return JournalWriteResult.already_exists(JournalEntryInfo.from_model(existing))

        kept = self._prepare_lines(lines)
        accounts = self._resolve_accounts(kept, allow_inactive)

        total_debits, total_credits = self._totals(kept)
        if not is_within_tolerance(total_debits, total_credits):
            logger.warning(
                "unbalanced_entry_rejected",
                extra={
                    "total_debits": str(total_debits),
                    "total_credits": str(total_credits),
                },
            )
            raise UnbalancedEntryError(str(total_debits), str(total_credits))

        period = self._periods.validate_posting_date(entry_date)

        entry = JournalEntry(
            entry_date=entry_date,
            posting_date=self._clock.today(),
            period_id=period.id,
            description=description or "",
            source_type=source_type.value,
            source_id=source_id,
            source_key=source_key,
            status=JournalEntryStatus.DRAFT.value,
            total_debits=total_debits,
            total_credits=total_credits,
            reversal_of_id=reversal_of_id,
            created_by_id=actor_id,
        )
        for seq, (spec, account) in enumerate(zip(kept, accounts)):
            entry.lines.append(
                JournalLine(
                    account_id=account.id,
                    debit=spec.debit,
                    credit=spec.credit,
                    description=spec.description,
                    department_id=spec.department_id,
                    project_id=spec.project_id,
                    line_seq=seq,
                    created_by_id=actor_id,
                )
            )

        # A concurrent poster may insert the same source key between the
        # lookup above and this flush.
        savepoint = self._session.begin_nested()
        try:
            self._session.add(entry)
            self._session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            if source_key is None:
                raise
            existing = self._find_by_source_key(source_key)
            if existing is None:
                raise
            logger.warning(
                "concurrent_insert_conflict",
                extra={"source_key": source_key, "entry_number": existing.entry_number},
            )
            return JournalWriteResult.already_exists(JournalEntryInfo.from_model(existing))

        entry.entry_number = self._sequence.next_value(
            SequenceService.JOURNAL_ENTRY, start_at=self._entry_number_start
        )
        entry.status = JournalEntryStatus.POSTED.value
        entry.posted_at = self._clock.now()
        self._session.flush()

        with LogContext.bind(entry_id=str(entry.id)):
            logger.info(
                "journal_entry_created",
                extra={
                    "entry_number": entry.entry_number,
                    "period_name": period.name,
                    "line_count": len(entry.lines),
                    "total_debits": str(total_debits),
                },
            )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info(
            "journal_write_completed",
            extra={
                "entry_number": entry.entry_number,
                "source_type": source_type.value,
                "duration_ms": duration_ms,
            },
        )
        return JournalWriteResult.written(JournalEntryInfo.from_model(entry))
