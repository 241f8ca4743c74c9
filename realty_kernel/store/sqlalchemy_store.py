"""
Module: realty_kernel.store.sqlalchemy_store
Responsibility:
    ``RecordStore`` over SQLAlchemy ORM models.  Each logical table name maps
    to one declarative model; every call runs in its own session and commits
    or rolls back before returning.

Failure modes:
    - ``IntegrityError`` on delete  -> ``ReferentialConstraintError``.
    - ``LedgerImmutabilityError`` from the immutability listeners propagates
      unchanged (after rollback).
    - Any other ``SQLAlchemyError`` -> ``PersistenceError``.
"""

from collections.abc import Mapping

from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from realty_kernel.exceptions import (
    PersistenceError,
    RecordNotFoundError,
    ReferentialConstraintError,
)
from realty_kernel.logging_config import get_logger
from realty_kernel.store.base import Record, RecordFilter, RecordStore

logger = get_logger("store.sqlalchemy")


class SqlAlchemyRecordStore(RecordStore):
    """
    Record store backed by a relational database.

    Args:
        session_factory: ``sessionmaker`` bound to the target engine.
        models: logical table name -> ORM model class.
    """

    def __init__(self, session_factory: sessionmaker[Session], models: Mapping[str, type]):
        self._session_factory = session_factory
        self._models = dict(models)

    def _model(self, table: str) -> type:
        try:
            return self._models[table]
        except KeyError:
            raise PersistenceError(f"No model registered for table {table}", table=table) from None

    @staticmethod
    def _columns(model: type) -> tuple[str, ...]:
        return tuple(attr.key for attr in inspect(model).column_attrs)

    @staticmethod
    def _insertion_order(model: type) -> tuple:
        sequence = getattr(model, "insert_seq", None)
        return (model.id,) if sequence is None else (sequence, model.id)

    def _to_record(self, obj) -> Record:
        return {key: getattr(obj, key) for key in self._columns(type(obj))}

    def fetch_all(self, table: str, filter: RecordFilter | None = None) -> list[Record]:
        model = self._model(table)
        stmt = select(model).order_by(*self._insertion_order(model))
        if filter is not None:
            stmt = stmt.where(getattr(model, filter.field) == filter.value)
        try:
            with self._session_factory() as session:
                return [self._to_record(obj) for obj in session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Fetch from {table} failed: {exc}", table=table) from exc

    def insert(self, table: str, record: Record) -> Record:
        model = self._model(table)
        columns = self._columns(model)
        values = {k: v for k, v in record.items() if k in columns and not (k == "id" and v is None)}
        with self._session_factory() as session:
            try:
                obj = model(**values)
                session.add(obj)
                session.commit()
                stored = self._to_record(obj)
            except SQLAlchemyError as exc:
                session.rollback()
                raise PersistenceError(
                    f"Insert into {table} failed: {exc}", table=table, record_id=values.get("id")
                ) from exc
        logger.debug("record_inserted", extra={"table": table, "record_id": stored["id"]})
        return stored

    def update(self, table: str, record: Record) -> Record:
        model = self._model(table)
        record_id = record.get("id")
        if record_id is None:
            raise PersistenceError(f"Update on {table} requires an id", table=table)
        columns = self._columns(model)
        with self._session_factory() as session:
            try:
                obj = session.get(model, record_id)
                if obj is None:
                    raise RecordNotFoundError(table, record_id)
                for key, value in record.items():
                    if key in columns and key != "id":
                        setattr(obj, key, value)
                session.commit()
                stored = self._to_record(obj)
            except SQLAlchemyError as exc:
                session.rollback()
                raise PersistenceError(
                    f"Update of {table} failed: {exc}", table=table, record_id=record_id
                ) from exc
            except Exception:
                session.rollback()
                raise
        logger.debug("record_updated", extra={"table": table, "record_id": record_id})
        return stored

    def delete(self, table: str, record_id: str) -> None:
        model = self._model(table)
        with self._session_factory() as session:
            try:
                obj = session.get(model, record_id)
                if obj is None:
                    raise RecordNotFoundError(table, record_id)
                session.delete(obj)
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ReferentialConstraintError(table, record_id) from exc
            except SQLAlchemyError as exc:
                session.rollback()
                raise PersistenceError(
                    f"Delete from {table} failed: {exc}", table=table, record_id=record_id
                ) from exc
            except Exception:
                session.rollback()
                raise
        logger.debug("record_deleted", extra={"table": table, "record_id": record_id})
