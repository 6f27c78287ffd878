"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries -- per-account debit/credit
    aggregation, single-account balances, the ledger-wide balance check,
    the line listing used by the account drill-down, and the entry and
    project totals behind the analytics reports.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - No stored balances.  Every figure is summed from journal lines at
      query time.
    - Lines count when their entry is POSTED or REVERSED.  A reversed entry
      and its reversal both stay in the ledger and cancel out, so every
      historical as-of figure stays reproducible.
    - DRAFT entries never count.

Failure modes:
    - Returns empty results or zero balances when nothing is posted.

Audit relevance:
    LedgerSelector is the single aggregation path behind the trial balance
    and every financial statement.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import distinct, func, select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO, is_within_tolerance, to_money
from ledger_kernel.models.account import Account, AccountType, NormalBalance
from ledger_kernel.models.journal import BALANCE_STATUSES, JournalEntry, JournalLine, SourceType
from ledger_kernel.selectors.base import BaseSelector


def signed_balance(normal_balance: str, debit_total: Decimal, credit_total: Decimal) -> Decimal:
    """Balance in the account's natural direction (positive = normal)."""
    if normal_balance == NormalBalance.DEBIT:
        return debit_total - credit_total
    return credit_total - debit_total


@dataclass(frozen=True)
class TrialBalanceRow:
    """Debit and credit totals for one account."""

    account_id: UUID
    account_number: str
    account_name: str
    account_type: str
    sub_type: str
    normal_balance: str
    debit_total: Decimal
    credit_total: Decimal

    @property
    def balance(self) -> Decimal:
        """Signed by normal balance."""
        return signed_balance(self.normal_balance, self.debit_total, self.credit_total)

    @property
    def net_debit(self) -> Decimal:
        return self.debit_total - self.credit_total


@dataclass(frozen=True)
class AccountBalance:
    """Balance for a single account."""

    account_id: UUID
    normal_balance: str
    debit_total: Decimal
    credit_total: Decimal
    line_count: int

    @property
    def balance(self) -> Decimal:
        return signed_balance(self.normal_balance, self.debit_total, self.credit_total)


@dataclass(frozen=True)
class LedgerLine:
    """A single posted line with its entry header fields."""

    journal_entry_id: UUID
    entry_number: int
    entry_date: date
    entry_description: str
    source_type: str
    line_description: str | None
    debit: Decimal
    credit: Decimal
    line_seq: int


@dataclass(frozen=True)
class EntryTotal:
    """Header of one counted entry with its debit total."""

    journal_entry_id: UUID
    entry_number: int
    entry_date: date
    description: str
    source_type: str
    total_debits: Decimal


@dataclass(frozen=True)
class ProjectActivity:
    """
    Ledger activity tagged with one project id.

    ``revenue`` is the net credit on revenue accounts; ``labor_cost`` is
    the debit total of time-entry lines.
    """

    project_id: str
    revenue: Decimal
    labor_cost: Decimal
    invoice_count: int


class LedgerSelector(BaseSelector[JournalLine]):
    """
    Selector for ledger aggregation.

    Date filters:
        ``start_date`` and ``as_of_date`` are inclusive bounds on the entry
        date; ``before_date`` is exclusive (used for opening balances).
        ``period_id`` restricts to entries assigned to that period.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    @staticmethod
    def _apply_filters(
        query,
        start_date: date | None = None,
        as_of_date: date | None = None,
        before_date: date | None = None,
        period_id: UUID | None = None,
    ):
        query = query.where(JournalEntry.status.in_(BALANCE_STATUSES))
        if start_date is not None:
            query = query.where(JournalEntry.entry_date >= start_date)
        if as_of_date is not None:
            query = query.where(JournalEntry.entry_date <= as_of_date)
        if before_date is not None:
            query = query.where(JournalEntry.entry_date < before_date)
        if period_id is not None:
            query = query.where(JournalEntry.period_id == period_id)
        return query

    def trial_balance(
        self,
        as_of_date: date | None = None,
        start_date: date | None = None,
        period_id: UUID | None = None,
        before_date: date | None = None,
    ) -> list[TrialBalanceRow]:
        """
        Per-account debit and credit totals, ordered by account number.

        Only accounts with at least one counted line appear.

        Args:
            as_of_date: Inclusive upper bound on entry date.
            start_date: Inclusive lower bound on entry date.
            period_id: Restrict to entries in this period.
            before_date: Exclusive upper bound on entry date.
        """
        debit_sum = func.coalesce(func.sum(JournalLine.debit), 0).label("debit_total")
        credit_sum = func.coalesce(func.sum(JournalLine.credit), 0).label("credit_total")

        query = (
            select(
                Account.id,
                Account.account_number,
                Account.name,
                Account.account_type,
                Account.sub_type,
                Account.normal_balance,
                debit_sum,
                credit_sum,
            )
            .select_from(JournalLine)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .join(Account, JournalLine.account_id == Account.id)
        )
        query = self._apply_filters(
            query,
            start_date=start_date,
            as_of_date=as_of_date,
            before_date=before_date,
            period_id=period_id,
        )
        query = query.group_by(
            Account.id,
            Account.account_number,
            Account.name,
            Account.account_type,
            Account.sub_type,
            Account.normal_balance,
        ).order_by(Account.account_number)

        return [
            TrialBalanceRow(
                account_id=row.id,
                account_number=row.account_number,
                account_name=row.name,
                account_type=str(row.account_type),
                sub_type=str(row.sub_type),
                normal_balance=str(row.normal_balance),
                debit_total=to_money(row.debit_total),
                credit_total=to_money(row.credit_total),
            )
            for row in self.session.execute(query)
        ]

    def balances_by_account(
        self,
        as_of_date: date | None = None,
        start_date: date | None = None,
        before_date: date | None = None,
    ) -> dict[UUID, TrialBalanceRow]:
        """Trial-balance rows keyed by account id."""
        return {
            row.account_id: row
            for row in self.trial_balance(
                as_of_date=as_of_date,
                start_date=start_date,
                before_date=before_date,
            )
        }

    def account_balance(
        self,
        account_id: UUID,
        as_of_date: date | None = None,
        start_date: date | None = None,
        before_date: date | None = None,
    ) -> AccountBalance:
        """Totals for one account; zero when the account has no lines."""
        normal_balance = self.session.execute(
            select(Account.normal_balance).where(Account.id == account_id)
        ).scalar_one_or_none()

        query = (
            select(
                func.coalesce(func.sum(JournalLine.debit), 0),
                func.coalesce(func.sum(JournalLine.credit), 0),
                func.count(JournalLine.id),
            )
            .select_from(JournalLine)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(JournalLine.account_id == account_id)
        )
        query = self._apply_filters(
            query, start_date=start_date, as_of_date=as_of_date, before_date=before_date
        )
        debit_total, credit_total, line_count = self.session.execute(query).one()

        return AccountBalance(
            account_id=account_id,
            normal_balance=str(normal_balance or NormalBalance.DEBIT.value),
            debit_total=to_money(debit_total),
            credit_total=to_money(credit_total),
            line_count=line_count,
        )

    def total_debits_credits(self, as_of_date: date | None = None) -> tuple[Decimal, Decimal]:
        """Ledger-wide debit and credit totals."""
        query = (
            select(
                func.coalesce(func.sum(JournalLine.debit), 0),
                func.coalesce(func.sum(JournalLine.credit), 0),
            )
            .select_from(JournalLine)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
        )
        query = self._apply_filters(query, as_of_date=as_of_date)
        debits, credits = self.session.execute(query).one()
        return to_money(debits), to_money(credits)

    def is_balanced(self, as_of_date: date | None = None) -> bool:
        """Σdebit equals Σcredit within 0.01 across the whole ledger."""
        debits, credits = self.total_debits_credits(as_of_date)
        return is_within_tolerance(debits, credits)

    def account_lines(
        self,
        account_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
        limit: int | None = None,
        most_recent: bool = False,
    ) -> list[LedgerLine]:
        """
        Counted lines for an account in chronological order.

        Ordered by entry date, entry number, line sequence.  With
        ``most_recent`` the ``limit`` keeps the latest lines instead of the
        earliest; the result is still chronological.
        """
        query = (
            select(
                JournalEntry.id,
                JournalEntry.entry_number,
                JournalEntry.entry_date,
                JournalEntry.description,
                JournalEntry.source_type,
                JournalLine.description,
                JournalLine.debit,
                JournalLine.credit,
                JournalLine.line_seq,
            )
            .select_from(JournalLine)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(JournalLine.account_id == account_id)
        )
        query = self._apply_filters(query, start_date=start_date, as_of_date=end_date)
        ordering = (JournalEntry.entry_date, JournalEntry.entry_number, JournalLine.line_seq)
        if most_recent:
            query = query.order_by(*(col.desc() for col in ordering))
        else:
            query = query.order_by(*ordering)
        if limit is not None:
            query = query.limit(limit)

        lines = [
            LedgerLine(
                journal_entry_id=row[0],
                entry_number=row[1],
                entry_date=row[2],
                entry_description=row[3],
                source_type=str(row[4]),
                line_description=row[5],
                debit=to_money(row[6]),
                credit=to_money(row[7]),
                line_seq=row[8],
            )
            for row in self.session.execute(query)
        ]
        if most_recent:
            lines.reverse()
        return lines

    def count_account_lines(
        self,
        account_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> int:
        query = (
            select(func.count(JournalLine.id))
            .select_from(JournalLine)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(JournalLine.account_id == account_id)
        )
        query = self._apply_filters(query, start_date=start_date, as_of_date=end_date)
        return self.session.execute(query).scalar_one()

    def entry_totals(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        limit: int | None = None,
    ) -> list[EntryTotal]:
        """Counted entries in the range, newest first."""
        query = select(
            JournalEntry.id,
            JournalEntry.entry_number,
            JournalEntry.entry_date,
            JournalEntry.description,
            JournalEntry.source_type,
            JournalEntry.total_debits,
        )
        query = self._apply_filters(query, start_date=start_date, as_of_date=end_date)
        query = query.order_by(JournalEntry.entry_date.desc(), JournalEntry.entry_number.desc())
        if limit is not None:
            query = query.limit(limit)
        return [
            EntryTotal(
                journal_entry_id=row[0],
                entry_number=row[1],
                entry_date=row[2],
                description=row[3],
                source_type=str(row[4]),
                total_debits=to_money(row[5]),
            )
            for row in self.session.execute(query)
        ]

    def project_activity(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[ProjectActivity]:
        """
        Revenue, labor cost and invoice count per line ``project_id``.

        Lines without a project id are ignored.  Ordered by project id.
        """
        revenue_query = (
            select(
                JournalLine.project_id,
                func.coalesce(func.sum(JournalLine.credit), 0),
                func.coalesce(func.sum(JournalLine.debit), 0),
            )
            .select_from(JournalLine)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .join(Account, JournalLine.account_id == Account.id)
            .where(JournalLine.project_id.is_not(None))
            .where(Account.account_type == AccountType.REVENUE.value)
        )
        revenue_query = self._apply_filters(
            revenue_query, start_date=start_date, as_of_date=end_date
        ).group_by(JournalLine.project_id)

        labor_query = (
            select(JournalLine.project_id, func.coalesce(func.sum(JournalLine.debit), 0))
            .select_from(JournalLine)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(JournalLine.project_id.is_not(None))
            .where(JournalEntry.source_type == SourceType.TIME_ENTRY.value)
        )
        labor_query = self._apply_filters(
            labor_query, start_date=start_date, as_of_date=end_date
        ).group_by(JournalLine.project_id)

        invoice_query = (
            select(JournalLine.project_id, func.count(distinct(JournalEntry.id)))
            .select_from(JournalLine)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(JournalLine.project_id.is_not(None))
            .where(JournalEntry.source_type == SourceType.INVOICE.value)
        )
        invoice_query = self._apply_filters(
            invoice_query, start_date=start_date, as_of_date=end_date
        ).group_by(JournalLine.project_id)

        revenue = {
            project_id: to_money(credits) - to_money(debits)
            for project_id, credits, debits in self.session.execute(revenue_query)
        }
        labor = {
            project_id: to_money(debits)
            for project_id, debits in self.session.execute(labor_query)
        }
        invoices = dict(self.session.execute(invoice_query).all())

        return [
            ProjectActivity(
                project_id=project_id,
                revenue=revenue.get(project_id, ZERO),
                labor_cost=labor.get(project_id, ZERO),
                invoice_count=invoices.get(project_id, 0),
            )
            for project_id in sorted(set(revenue) | set(labor) | set(invoices))
        ]
