"""
Module: realty_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the string primary key convention, the type annotation map for consistent
    column types, and the TrackedBase mixin for audit timestamps.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  MUST NOT import from store/, domain/, or realty_modules.

Invariants enforced:
    - String primary keys: records keep the ids the record store hands out
      (uuid4 strings by default, caller-supplied ids are preserved).
    - Decimal precision: Decimal maps to Numeric(38, 9).  NEVER use float for
      monetary amounts or split percentages.
    - Insertion order: every tracked row carries ``insert_seq``, strictly
      increasing within a process.  Stores read rows back ordered by it.
"""

import threading
import time
from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def new_record_id() -> str:
    """Generate a primary key for a new record."""
    return str(uuid4())


_sequence_lock = threading.Lock()
_last_sequence = 0


def next_insert_sequence() -> int:
    """Wall-clock nanoseconds, bumped so two calls never return the same value."""
    global _last_sequence
    with _sequence_lock:
        _last_sequence = max(time.time_ns(), _last_sequence + 1)
        return _last_sequence


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is a string primary key, defaulting to a uuid4 string.
        - Decimal maps to Numeric(38, 9) -- financial-grade precision.
        - datetime maps to DateTime(timezone=True).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9, asdecimal=True),
        datetime: DateTime(timezone=True),
    }

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=new_record_id,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamps.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at auto-updates on every UPDATE.
        - insert_seq orders rows by insertion, independent of id.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    insert_seq: Mapped[int] = mapped_column(
        BigInteger,
        default=next_insert_sequence,
        nullable=False,
        index=True,
    )
