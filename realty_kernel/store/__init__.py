"""Record store contract and implementations."""

from realty_kernel.store.base import Record, RecordFilter, RecordStore
from realty_kernel.store.memory import InMemoryRecordStore
from realty_kernel.store.sqlalchemy_store import SqlAlchemyRecordStore

__all__ = [
    "Record",
    "RecordFilter",
    "RecordStore",
    "InMemoryRecordStore",
    "SqlAlchemyRecordStore",
]
