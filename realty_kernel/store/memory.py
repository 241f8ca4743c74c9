"""
In-memory record store.

Backs tests and single-process tooling.  Referential constraints and
append-only tables are declared at construction, mirroring what the SQL
schema enforces for ``SqlAlchemyRecordStore``.
"""

from collections.abc import Iterable, Mapping, Sequence
from copy import deepcopy

from realty_kernel.db.base import new_record_id
from realty_kernel.exceptions import (
    LedgerImmutabilityError,
    PersistenceError,
    RecordNotFoundError,
    ReferentialConstraintError,
)
from realty_kernel.logging_config import get_logger
from realty_kernel.store.base import Record, RecordFilter, RecordStore

logger = get_logger("store.memory")


class InMemoryRecordStore(RecordStore):
    """
    Dict-of-dicts record store.

    Args:
        references: ``{target_table: [(referencing_table, field), ...]}``.
            Deleting a target record still named by a referencing record's
            ``field`` raises ``ReferentialConstraintError``.
        append_only: tables whose records can be inserted but never updated
            or deleted.
    """

    def __init__(
        self,
        references: Mapping[str, Sequence[tuple[str, str]]] | None = None,
        append_only: Iterable[str] = (),
    ):
        self._tables: dict[str, dict[str, Record]] = {}
        self._references = {k: tuple(v) for k, v in (references or {}).items()}
        self._append_only = frozenset(append_only)

    def _table(self, table: str) -> dict[str, Record]:
        return self._tables.setdefault(table, {})

    def fetch_all(self, table: str, filter: RecordFilter | None = None) -> list[Record]:
        rows = self._table(table).values()
        return [deepcopy(r) for r in rows if filter is None or filter.matches(r)]

    def insert(self, table: str, record: Record) -> Record:
        rows = self._table(table)
        stored = deepcopy(record)
        if stored.get("id") is None:
            stored["id"] = new_record_id()
        if stored["id"] in rows:
            raise PersistenceError(
                f"Duplicate id {stored['id']} in {table}", table=table, record_id=stored["id"]
            )
        rows[stored["id"]] = stored
        logger.debug("record_inserted", extra={"table": table, "record_id": stored["id"]})
        return deepcopy(stored)

    def update(self, table: str, record: Record) -> Record:
        record_id = record.get("id")
        if record_id is None:
            raise PersistenceError(f"Update on {table} requires an id", table=table)
        if table in self._append_only:
            raise LedgerImmutabilityError(table=table, record_id=record_id, operation="update")
        rows = self._table(table)
        if record_id not in rows:
            raise RecordNotFoundError(table, record_id)
        merged = {**rows[record_id], **deepcopy(record)}
        rows[record_id] = merged
        logger.debug("record_updated", extra={"table": table, "record_id": record_id})
        return deepcopy(merged)

    def delete(self, table: str, record_id: str) -> None:
        if table in self._append_only:
            raise LedgerImmutabilityError(table=table, record_id=record_id, operation="delete")
        rows = self._table(table)
        if record_id not in rows:
            raise RecordNotFoundError(table, record_id)
        for ref_table, field in self._references.get(table, ()):
            if any(r.get(field) == record_id for r in self._table(ref_table).values()):
                raise ReferentialConstraintError(
                    table, record_id, referenced_by=f"{ref_table}.{field}"
                )
        del rows[record_id]
        logger.debug("record_deleted", extra={"table": table, "record_id": record_id})
