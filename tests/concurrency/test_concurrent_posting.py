"""
True concurrency tests: threads posting against one committed database.

Each thread opens its own session, waits on a shared barrier and then
posts.  Verifies:
- Concurrent manual posts get unique, contiguous entry numbers
- Concurrent posts for one (source_type, source_id) create exactly one entry
- Concurrent auto-posting runs post each invoice at most once

Every scenario runs against file-backed SQLite; the ``postgres`` variants
run when DATABASE_URL points at PostgreSQL.

Run with: pytest tests/concurrency/ -v
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import func, select

from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.models.journal import JournalEntry, SourceType
from ledger_kernel.services.journal_writer import JournalWriter, WriteStatus
from ledger_kernel.services.sequence_service import SequenceService
from ledger_modules.autopost import AutoPostService
from ledger_modules.autopost.orm import InvoiceModel

FIRST_ENTRY_NUMBER = 10001
THREADS = 8


def _lines(amount: str) -> list[LineSpec]:
    return [
        LineSpec.dr("1010", Decimal(amount)),
        LineSpec.cr("4000", Decimal(amount)),
    ]


def _entries(factory) -> list[JournalEntry]:
    with factory() as session:
        entries = session.execute(
            select(JournalEntry).order_by(JournalEntry.entry_number)
        ).scalars().all()
        assert all(entry.is_balanced for entry in entries)
        assert all(entry.is_posted for entry in entries)
        return list(entries)


def _counter(factory) -> int | None:
    with factory() as session:
        return SequenceService(session).current_value(SequenceService.JOURNAL_ENTRY)


class TestConcurrentEntryNumbers:
    def test_distinct_posts_get_contiguous_numbers(
        self, committed_ledger, run_concurrently, deterministic_clock, test_actor_id,
    ):
        factory = committed_ledger

        def post(index):
            with factory() as session:
                result = JournalWriter(session, deterministic_clock).post_entry(
                    entry_date=date(2024, 3, 5),
                    description=f"Concurrent entry {index}",
                    lines=_lines(f"{100 + index}.00"),
                    actor_id=test_actor_id,
                )
                session.commit()
                return result

        results = run_concurrently(post, threads=THREADS)

        assert all(r.status == WriteStatus.WRITTEN for r in results)
        numbers = sorted(r.entry.entry_number for r in results)
        assert numbers == list(range(FIRST_ENTRY_NUMBER, FIRST_ENTRY_NUMBER + THREADS))

        stored = _entries(factory)
        assert [e.entry_number for e in stored] == numbers
        assert _counter(factory) == FIRST_ENTRY_NUMBER + THREADS - 1

    def test_numbers_stay_contiguous_across_rounds(
        self, committed_ledger, run_concurrently, deterministic_clock, test_actor_id,
    ):
        factory = committed_ledger

        def post(index):
            with factory() as session:
                writer = JournalWriter(session, deterministic_clock)
                numbers = []
                for n in range(3):
                    result = writer.post_entry(
                        entry_date=date(2024, 4, 2),
                        description=f"Thread {index} entry {n}",
                        lines=_lines("25.00"),
                        actor_id=test_actor_id,
                    )
                    session.commit()
                    numbers.append(result.entry.entry_number)
                return numbers

        per_thread = run_concurrently(post, threads=THREADS)

        everything = sorted(n for numbers in per_thread for n in numbers)
        assert len(everything) == len(set(everything))
        assert everything == list(range(FIRST_ENTRY_NUMBER, FIRST_ENTRY_NUMBER + 3 * THREADS))
        # Each thread's own entries are numbered in the order it posted them.
        assert all(numbers == sorted(numbers) for numbers in per_thread)


class TestConcurrentIdempotency:
    def test_same_source_posts_once(
        self, committed_ledger, run_concurrently, deterministic_clock, test_actor_id,
    ):
        factory = committed_ledger

        def post(index):
            with factory() as session:
                result = JournalWriter(session, deterministic_clock).post_entry(
                    entry_date=date(2024, 3, 5),
                    description="Invoice #1001 - Acme Corp",
                    lines=_lines("1500.00"),
                    actor_id=test_actor_id,
                    source_type=SourceType.INVOICE,
                    source_id="inv-1001",
                )
                session.commit()
                return result

        results = run_concurrently(post, threads=THREADS)

        written = [r for r in results if r.status == WriteStatus.WRITTEN]
        existing = [r for r in results if r.status == WriteStatus.ALREADY_EXISTS]
        assert len(written) == 1
        assert len(existing) == THREADS - 1
        assert len({r.entry_id for r in results}) == 1

        stored = _entries(factory)
        assert len(stored) == 1
        assert stored[0].entry_number == FIRST_ENTRY_NUMBER
        # Losing threads allocated no number.
        assert _counter(factory) == FIRST_ENTRY_NUMBER


class TestConcurrentAutoPosting:
    INVOICES = 5

    def _add_invoices(self, factory, test_actor_id):
        with factory() as session:
            for n in range(self.INVOICES):
                session.add(
                    InvoiceModel(
                        invoice_number=str(2001 + n),
                        customer_name="Acme Corp",
                        issue_date=date(2024, 3, 1 + n),
                        status="sent",
                        total=Decimal("1000.00") + n,
                        created_by_id=test_actor_id,
                    )
                )
            session.commit()

    def test_each_invoice_posted_at_most_once(
        self, committed_ledger, run_concurrently, deterministic_clock, test_actor_id,
    ):
        factory = committed_ledger
        self._add_invoices(factory, test_actor_id)

        def run(index):
            with factory() as session:
                return AutoPostService(session, deterministic_clock).post_invoices(test_actor_id)

        results = run_concurrently(run, threads=4)

        assert sum(r.posted for r in results) == self.INVOICES
        assert all(r.total == self.INVOICES for r in results)
        assert not any(r.has_errors for r in results)

        with factory() as session:
            per_source = session.execute(
                select(JournalEntry.source_id, func.count())
                .where(JournalEntry.source_type == SourceType.INVOICE.value)
                .group_by(JournalEntry.source_id)
            ).all()
        assert len(per_source) == self.INVOICES
        assert all(count == 1 for _, count in per_source)

        numbers = [e.entry_number for e in _entries(factory)]
        assert numbers == list(range(FIRST_ENTRY_NUMBER, FIRST_ENTRY_NUMBER + self.INVOICES))
