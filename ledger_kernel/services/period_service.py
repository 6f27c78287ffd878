"""
PeriodService -- accounting-period calendar and posting-date validation.

Responsibility:
    Generates fiscal years of monthly periods, drives the period lifecycle
    (OPEN <-> CLOSED, OPEN/CLOSED -> LOCKED) and validates that a posting
    date falls inside an open period before JournalWriter writes anything.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by JournalWriter and ReversalService inside the posting
    transaction, and by the API layer for calendar maintenance.

Invariants enforced:
    - Non-overlap: at most one period covers any calendar date.
    - Closed-period enforcement: ``validate_posting_date()`` rejects
      CLOSED and LOCKED periods.  The period row is locked
      (SELECT ... FOR UPDATE) so a concurrent close cannot slip between
      the check and the write.
    - LOCKED is terminal.
    - Returns frozen ``PeriodInfo`` DTOs, never ORM entities.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - PeriodNotFoundError: no period covers the date, or unknown id.
    - PeriodClosedError: posting into a CLOSED or LOCKED period.
    - FiscalYearExistsError: generate_fiscal_year on a year with periods.
    - PeriodOverlapError: create_period over an existing range.
    - InvalidStateTransitionError: reopen/lock/close out of order.

Audit relevance:
    Period creation, close, reopen and lock are logged with the period
    name, actor and timestamps.  Rejected postings are logged at WARNING.
"""

import calendar
from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import PeriodInfo
from ledger_kernel.domain.workflow import Transition, Workflow
from ledger_kernel.exceptions import (
    FiscalYearExistsError,
    InvalidInputError,
    PeriodClosedError,
    PeriodNotFoundError,
    PeriodOverlapError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.accounting_period import AccountingPeriod, PeriodStatus
from ledger_kernel.services.base import BaseService

logger = get_logger("services.period")


PERIOD_WORKFLOW = Workflow(
    name="accounting_period",
    description="Accounting period lifecycle",
    initial_state=PeriodStatus.OPEN.value,
    states=tuple(s.value for s in PeriodStatus),
    transitions=(
        Transition("open", "closed", action="close"),
        Transition("closed", "open", action="reopen"),
        Transition("open", "locked", action="lock"),
        Transition("closed", "locked", action="lock"),
    ),
    terminal_states=("locked",),
)


def quarter_for_month(month: int) -> int:
    return (month - 1) // 3 + 1


class PeriodService(BaseService[AccountingPeriod]):
    """
    Service for the accounting-period calendar.

    Contract:
        Lifecycle methods flush within the caller's transaction and return
        ``PeriodInfo``.  ``validate_posting_date`` returns the ORM row
        because JournalWriter needs it inside the same transaction.

    Non-goals:
        - Does NOT check that a period's postings are final before close.
        - Does NOT call ``session.commit()``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_period(
        self,
        name: str,
        start_date: date,
        end_date: date,
        fiscal_year: int,
        fiscal_month: int,
        actor_id: UUID,
        fiscal_quarter: int | None = None,
    ) -> PeriodInfo:
        """
        Create a single period.

        Raises:
            InvalidInputError: start_date after end_date, or month outside 1..12.
            PeriodOverlapError: Range overlaps an existing period.
        """
        if start_date > end_date:
            raise InvalidInputError(
                "end_date", f"start_date ({start_date}) cannot be after end_date ({end_date})"
            )
        if not 1 <= fiscal_month <= 12:
            raise InvalidInputError("fiscal_month", f"must be 1..12, got {fiscal_month}")

        self._validate_no_overlap(name, start_date, end_date)

        period = AccountingPeriod(
            name=name,
            start_date=start_date,
            end_date=end_date,
            fiscal_year=fiscal_year,
            fiscal_month=fiscal_month,
            fiscal_quarter=fiscal_quarter or quarter_for_month(fiscal_month),
            status=PeriodStatus.OPEN.value,
            created_by_id=actor_id,
        )
        self.session.add(period)
        self.session.flush()

        logger.info(
            "period_created",
            extra={
                "period_name": name,
                "start_date": str(start_date),
                "end_date": str(end_date),
            },
        )
        return PeriodInfo.from_model(period)

    def _validate_no_overlap(self, new_name: str, start_date: date, end_date: date) -> None:
        # Two ranges overlap iff start1 <= end2 AND start2 <= end1
        overlapping = self.session.execute(
            select(AccountingPeriod)
            .where(
                AccountingPeriod.start_date <= end_date,
                AccountingPeriod.end_date >= start_date,
            )
            .limit(1)
        ).scalar_one_or_none()

        if overlapping is not None:
            raise PeriodOverlapError(
                new_period=new_name,
                existing_period=overlapping.name,
                new_start=str(start_date),
                new_end=str(end_date),
                existing_start=str(overlapping.start_date),
                existing_end=str(overlapping.end_date),
            )

    def generate_fiscal_year(self, year: int, actor_id: UUID) -> list[PeriodInfo]:
        """
        Create twelve contiguous monthly periods for ``year``.

        Postconditions:
            - Periods named "January 2024" ... "December 2024", each from
              the first to the last day of its month, all OPEN.

        Raises:
            FiscalYearExistsError: Any period already exists for ``year``.
            PeriodOverlapError: A custom period already covers part of the
                calendar year.
        """
        existing = self.session.execute(
            select(func.count(AccountingPeriod.id)).where(AccountingPeriod.fiscal_year == year)
        ).scalar_one()
        if existing:
            raise FiscalYearExistsError(year, existing)

        periods = []
        for month in range(1, 13):
            last_day = calendar.monthrange(year, month)[1]
            periods.append(
                self.create_period(
                    name=f"{calendar.month_name[month]} {year}",
                    start_date=date(year, month, 1),
                    end_date=date(year, month, last_day),
                    fiscal_year=year,
                    fiscal_month=month,
                    actor_id=actor_id,
                )
            )

        logger.info(
            "fiscal_year_generated",
            extra={"fiscal_year": year, "period_count": len(periods)},
        )
        return periods

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _get_period_for_update(self, period_id: UUID) -> AccountingPeriod:
        period = self.session.execute(
            select(AccountingPeriod)
            .where(AccountingPeriod.id == period_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period

    def close_period(self, period_id: UUID, actor_id: UUID) -> PeriodInfo:
        """
        Close a period to new postings.

        Closing an already-closed period is a no-op.

        Postconditions:
            - status is CLOSED, closed_at is the clock time, closed_by_id
              is ``actor_id``.

        Raises:
            PeriodNotFoundError: Unknown ``period_id``.
            InvalidStateTransitionError: Period is LOCKED.
        """
        period = self._get_period_for_update(period_id)
        if period.is_closed:
            return PeriodInfo.from_model(period)

        PERIOD_WORKFLOW.require_transition(period.status, "close")
        period.status = PeriodStatus.CLOSED.value
        period.closed_at = self._clock.now()
        period.closed_by_id = actor_id
        period.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "period_closed",
            extra={"period_name": period.name, "actor_id": str(actor_id)},
        )
        return PeriodInfo.from_model(period)

    def reopen_period(self, period_id: UUID, actor_id: UUID) -> PeriodInfo:
        """
        Reopen a CLOSED period and clear its close stamp.

        Raises:
            PeriodNotFoundError: Unknown ``period_id``.
            InvalidStateTransitionError: Period is OPEN or LOCKED.
        """
        period = self._get_period_for_update(period_id)
        PERIOD_WORKFLOW.require_transition(period.status, "reopen")

        period.status = PeriodStatus.OPEN.value
        period.closed_at = None
        period.closed_by_id = None
        period.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "period_reopened",
            extra={"period_name": period.name, "actor_id": str(actor_id)},
        )
        return PeriodInfo.from_model(period)

    def lock_period(self, period_id: UUID, actor_id: UUID) -> PeriodInfo:
        """
        Permanently lock a period after external audit.

        OPEN or CLOSED -> LOCKED.  No operation leads out of LOCKED.

        Raises:
            PeriodNotFoundError: Unknown ``period_id``.
            InvalidStateTransitionError: Period is already LOCKED.
        """
        period = self._get_period_for_update(period_id)
        PERIOD_WORKFLOW.require_transition(period.status, "lock")

        now = self._clock.now()
        if period.closed_at is None:
            period.closed_at = now
            period.closed_by_id = actor_id
        period.status = PeriodStatus.LOCKED.value
        period.locked_at = now
        period.locked_by_id = actor_id
        period.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "period_locked",
            extra={"period_name": period.name, "actor_id": str(actor_id)},
        )
        return PeriodInfo.from_model(period)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_period(self, period_id: UUID) -> PeriodInfo:
        period = self.session.get(AccountingPeriod, period_id)
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return PeriodInfo.from_model(period)

    def list_periods(self, fiscal_year: int | None = None) -> list[PeriodInfo]:
        """Periods, most recent first."""
        query = select(AccountingPeriod)
        if fiscal_year is not None:
            query = query.where(AccountingPeriod.fiscal_year == fiscal_year)
        query = query.order_by(AccountingPeriod.start_date.desc())
        return [PeriodInfo.from_model(p) for p in self.session.execute(query).scalars()]

    def _period_for_date_orm(self, on_date: date, for_update: bool = False) -> AccountingPeriod | None:
        query = select(AccountingPeriod).where(
            AccountingPeriod.start_date <= on_date,
            AccountingPeriod.end_date >= on_date,
        )
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(query).scalar_one_or_none()

    def get_period_for_date(self, on_date: date) -> PeriodInfo | None:
        period = self._period_for_date_orm(on_date)
        return PeriodInfo.from_model(period) if period else None

    def validate_posting_date(self, entry_date: date, for_update: bool = True) -> AccountingPeriod:
        """
        Resolve and check the period that will receive a posting.

        Preconditions:
            - Called inside the posting transaction when ``for_update``.

        Postconditions:
            - Returns the OPEN period covering ``entry_date``; its row stays
              locked until the caller's transaction ends.

        Raises:
            PeriodNotFoundError: No period covers ``entry_date``.
            PeriodClosedError: The period is CLOSED or LOCKED.
        """
        period = self._period_for_date_orm(entry_date, for_update=for_update)

        if period is None:
            logger.warning(
                "posting_period_missing",
                extra={"entry_date": str(entry_date)},
            )
            raise PeriodNotFoundError(str(entry_date))

        if not period.accepts_postings:
            logger.warning(
                "posting_period_closed",
                extra={
                    "entry_date": str(entry_date),
                    "period_name": period.name,
                    "period_status": period.status,
                },
            )
            raise PeriodClosedError(period.name, str(entry_date), status=period.status)

        return period

    def is_date_in_open_period(self, on_date: date) -> bool:
        period = self._period_for_date_orm(on_date)
        return period is not None and period.accepts_postings

    def get_open_periods(self) -> list[PeriodInfo]:
        result = self.session.execute(
            select(AccountingPeriod)
            .where(AccountingPeriod.status == PeriodStatus.OPEN.value)
            .order_by(AccountingPeriod.start_date)
        )
        return [PeriodInfo.from_model(p) for p in result.scalars()]

    def get_current_period(self, as_of: date | None = None) -> PeriodInfo | None:
        """Period containing ``as_of`` (default: the clock's today)."""
        return self.get_period_for_date(as_of or self._clock.today())
