"""
Module ORM Registry (``realty_modules._orm_registry``).

Responsibility
--------------
Ensure every module-level SQLAlchemy ORM model is imported so that
``Base.metadata`` contains its table before tables are created, and that the
append-only listeners are installed on ledger rows.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from ``realty_modules.*.orm`` and from
``realty_kernel.db`` (allowed: modules -> kernel).  MUST NOT be imported by
``realty_kernel``.

Usage
-----
Entry points and ``tests/conftest.py`` call ``create_all_tables()`` once
the engine is initialized, then ``create_record_store()`` for a store bound to
the same engine.
"""

from realty_kernel.db.engine import create_tables, get_session_factory
from realty_kernel.logging_config import get_logger
from realty_kernel.store.sqlalchemy_store import SqlAlchemyRecordStore

logger = get_logger("modules.orm_registry")


def import_all_orm_models() -> None:
    """Import every module ORM and register ledger immutability. Idempotent."""
    from realty_modules.transactions.orm import register_ledger_immutability

    register_ledger_immutability()


def create_all_tables() -> None:
    """Register all module ORM models, then create every table."""
    import_all_orm_models()
    create_tables()


def create_record_store() -> SqlAlchemyRecordStore:
    """``SqlAlchemyRecordStore`` over the initialized engine with every module table."""
    from realty_modules.transactions.orm import TABLE_MODELS

    import_all_orm_models()
    store = SqlAlchemyRecordStore(get_session_factory(), TABLE_MODELS)
    logger.debug("record_store_created", extra={"tables": sorted(TABLE_MODELS)})
    return store
