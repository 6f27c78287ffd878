"""
Module ORM Registry (``ledger_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created.  The kernel's ``create_tables()`` only knows the kernel models;
``create_all_tables()`` is the way to get the complete schema.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``ledger_modules``
packages and from ``ledger_kernel.db.engine`` (allowed: modules -> kernel).
MUST NOT be imported by ``ledger_kernel``.

Usage
-----
Scripts, entrypoints, and ``tests/conftest.py`` all call
``create_all_tables()``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``ledger_modules.*.orm`` module to register ORM models.

    Kernel models must be registered first; module tables reference
    ``accounts`` and ``journal_entries``.

    This function is idempotent -- repeated calls are harmless.
    """
    import ledger_kernel.models  # noqa: F401
    import ledger_modules.autopost.orm  # noqa: F401
    import ledger_modules.expense.orm  # noqa: F401


def create_all_tables() -> None:
    """Create kernel + all module ORM tables.

    Preconditions:
        Engine must be initialized via ``init_engine_from_url()``.
    Postconditions:
        All kernel and module tables exist.
    """
    from ledger_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables()
