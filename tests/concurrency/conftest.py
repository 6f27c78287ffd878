"""
Fixtures for multi-threaded posting tests.

The suite-wide ``session`` fixture wraps every test in a transaction that
is rolled back, which hides other connections' work.  Threads here need
real commits, so each test gets a session factory over a database that
all threads share:

- ``sqlite_file``: a file-backed SQLite database under ``tmp_path``,
  built with its own engine (the suite's in-memory engine is untouched).
- ``postgres``: the suite engine, when DATABASE_URL points at PostgreSQL.
  Rows are deleted after each test.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest
from sqlalchemy import delete
from sqlalchemy.orm import sessionmaker

from ledger_kernel.db.base import Base
from ledger_kernel.db.engine import build_engine, get_session_factory, is_postgres
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.period_service import PeriodService
from ledger_modules._orm_registry import import_all_orm_models


@pytest.fixture
def sqlite_file_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    import_all_orm_models()
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def postgres_factory(db_tables, db_engine):
    if not is_postgres(db_engine):
        pytest.skip("DATABASE_URL is not PostgreSQL")
    factory = get_session_factory()
    yield factory
    with factory() as session:
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(delete(table))
        session.commit()


@pytest.fixture(
    params=[
        "sqlite_file",
        pytest.param("postgres", marks=pytest.mark.postgres),
    ]
)
def session_factory(request):
    """One session per thread, all on the same committed database."""
    return request.getfixturevalue(f"{request.param}_factory")


@pytest.fixture
def committed_ledger(session_factory, deterministic_clock, test_actor_id):
    """Default chart and an open 2024 calendar, committed."""
    with session_factory() as session:
        AccountService(session).seed_default_chart(test_actor_id)
        PeriodService(session, deterministic_clock).generate_fiscal_year(2024, test_actor_id)
        session.commit()
    return session_factory


@pytest.fixture
def run_concurrently():
    """
    Run ``work(index)`` on ``threads`` threads released together by a barrier.

    Returns the results in submission order; an exception in any thread
    is re-raised here.
    """

    def _run(work, threads):
        barrier = Barrier(threads, timeout=30)

        def _worker(index):
            barrier.wait()
            return work(index)

        with ThreadPoolExecutor(max_workers=threads) as pool:
            futures = [pool.submit(_worker, i) for i in range(threads)]
            return [f.result(timeout=120) for f in futures]

    return _run
