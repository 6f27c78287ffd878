"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Hands out strictly increasing numbers for journal entries (starting at
    10001) and expense documents (starting at 1001).  Uses the
    ``sequence_counters`` table with row-level locking
    (``SELECT ... FOR UPDATE``) so that concurrent posters never receive
    the same number.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by JournalWriter and by the expense module.

Invariants enforced:
    - Monotonicity: the locked counter row is the sole source of truth for
      the next value.  Aggregate-max-plus-one over journal_entries is never
      used.
    - Transactional: the increment is only visible after the caller's
      transaction commits.  A rollback returns the value, so an all-success
      run has no gaps.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and re-read).

Audit relevance:
    Every allocation is logged at DEBUG with sequence_name and value.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.exceptions import InvalidInputError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Guarantees:
        - Strictly monotonic values per sequence name.
        - The first value of a sequence is ``start_at`` (default 1).
        - Does NOT call ``session.commit()``.

    Usage:
        with session_scope() as session:
            number = SequenceService(session).next_value("journal_entry", start_at=10001)
    """

    JOURNAL_ENTRY = "journal_entry"
    EXPENSE = "expense"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str, start_at: int = 1) -> int:
        """
        Get the next value for a named sequence.

        Preconditions:
            - The caller is within an active database transaction.
            - ``start_at`` > 0.

        Postconditions:
            - Returns a value strictly greater than any previously committed
              value for ``sequence_name``.
            - The counter row is locked until the transaction completes.

        Args:
            sequence_name: Name of the sequence.
            start_at: First value handed out when the sequence is new.

        Returns:
            The next sequence value.
        """
        if start_at < 1:
            raise InvalidInputError("start_at", f"must be positive, got {start_at}")

        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use.  Another transaction may create the row at the same
            # time, so insert inside a savepoint and fall back to re-reading.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=start_at)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": start_at},
                )
                return start_at
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value = max(counter.current_value + 1, start_at)
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None if unused."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def reset(self, sequence_name: str, value: int = 0) -> None:
        """
        Reset a sequence to a specific value.

        WARNING: tests and data migration only.  Resetting below the highest
        issued value makes the next post collide on uq_journal_entry_number.
        """
        counter = self._locked_counter(sequence_name)
        if counter is None:
            self._session.add(SequenceCounter(name=sequence_name, current_value=value))
        else:
            counter.current_value = value
        self._session.flush()
        logger.warning(
            "sequence_reset",
            extra={"sequence_name": sequence_name, "value": value},
        )
