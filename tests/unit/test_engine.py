"""Tests for engine construction helpers."""

from sqlalchemy import text

from ledger_kernel.db.engine import build_engine, get_engine, is_postgres


def test_build_engine_leaves_ledger_engine_alone(db_engine, tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'side.db'}")
    try:
        assert get_engine() is db_engine
        assert engine is not db_engine
        assert not is_postgres(engine)
    finally:
        engine.dispose()


def test_file_sqlite_enforces_foreign_keys(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'fk.db'}")
    try:
        with engine.connect() as conn:
            assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
    finally:
        engine.dispose()


def test_is_postgres_defaults_to_ledger_engine(db_engine):
    assert is_postgres() == (db_engine.dialect.name == "postgresql")
