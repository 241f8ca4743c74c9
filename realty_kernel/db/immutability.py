"""
ORM-Level Immutability Enforcement for append-only records.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  For every model registered as append-only we listen on
``before_update`` and ``before_delete`` and raise ``LedgerImmutabilityError``:

    session.flush()
         |
         v
    [before_update] --> _block_update() --> LedgerImmutabilityError
    [before_delete] --> _block_delete() --> LedgerImmutabilityError
         |
         v
    SQL sent to database (only for non-protected models)

The transaction is aborted and the database is never modified.

===============================================================================
USAGE
===============================================================================

    from realty_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners(LedgerEntryModel)   # once at startup

    unregister_immutability_listeners(LedgerEntryModel)  # tests only
"""

from sqlalchemy import event

from realty_kernel.exceptions import LedgerImmutabilityError
from realty_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block_update(mapper, connection, target):
    """Reject any UPDATE of an append-only record."""
    table = mapper.local_table.name
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": table,
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise LedgerImmutabilityError(table=table, record_id=str(target.id), operation="update")


def _block_delete(mapper, connection, target):
    """Reject any DELETE of an append-only record."""
    table = mapper.local_table.name
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": table,
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise LedgerImmutabilityError(table=table, record_id=str(target.id), operation="delete")


def register_immutability_listeners(*models) -> None:
    """Register append-only enforcement for each given ORM model (idempotent)."""
    for model in models:
        if not event.contains(model, "before_update", _block_update):
            event.listen(model, "before_update", _block_update)
        if not event.contains(model, "before_delete", _block_delete):
            event.listen(model, "before_delete", _block_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners(*models) -> None:
    """
    Remove append-only enforcement.

    WARNING: Only use this in tests that intentionally violate immutability.
    """
    for model in models:
        _safe_remove_listener(model, "before_update", _block_update)
        _safe_remove_listener(model, "before_delete", _block_delete)
