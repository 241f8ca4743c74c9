"""
Record store contract (``realty_kernel.store.base``).

Responsibility
--------------
The abstract table-oriented store the ledger consumes.  Records are plain
dicts keyed by column name; typed conversion happens in the owning module at
the boundary, never here.

Contract
--------
* ``fetch_all(table, filter)`` -- records of ``table``, optionally where
  ``record[filter.field] == filter.value``, in insertion order.
* ``insert(table, record)`` -- stores a copy, generating ``id`` when absent,
  and returns the stored record.
* ``update(table, partial)`` -- merges ``partial`` (which must carry ``id``)
  into the stored record and returns the result.
* ``delete(table, id)`` -- removes the record.

Failure modes
-------------
* ``RecordNotFoundError`` -- update/delete target does not exist.
* ``ReferentialConstraintError`` -- delete blocked by a referencing record.
* ``LedgerImmutabilityError`` -- update/delete on an append-only table.
* ``PersistenceError`` -- any other store failure.  A failed call has not
  written anything.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

Record = dict[str, Any]


@dataclass(frozen=True)
class RecordFilter:
    """Equality filter on a single column."""
    field: str
    value: Any

    def matches(self, record: Record) -> bool:
        return record.get(self.field) == self.value


class RecordStore(ABC):
    """Abstract table-oriented record store."""

    @abstractmethod
    def fetch_all(self, table: str, filter: RecordFilter | None = None) -> list[Record]:
        ...

    @abstractmethod
    def insert(self, table: str, record: Record) -> Record:
        ...

    @abstractmethod
    def update(self, table: str, record: Record) -> Record:
        ...

    @abstractmethod
    def delete(self, table: str, record_id: str) -> None:
        ...

    def fetch_one(self, table: str, record_id: str) -> Record | None:
        """Return the record with ``record_id`` or None."""
        rows = self.fetch_all(table, RecordFilter("id", record_id))
        return rows[0] if rows else None
