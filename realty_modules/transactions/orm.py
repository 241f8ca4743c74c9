"""
Module: realty_modules.transactions.orm
Responsibility:
    SQLAlchemy ORM persistence models for the transaction ledger.  Column
    names match the record dicts produced by
    ``realty_modules.transactions.records`` so ``SqlAlchemyRecordStore`` can
    move records in and out without a mapping layer.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``.

Invariants enforced:
    - Money fields use Decimal (Numeric(38,9) via the type annotation map).
    - Enum fields stored as String(50) holding the enum value.
    - Commission splits are a JSON list on the asset row; the whole list is
      replaced on every save.
    - ``ledger_entries.asset_id`` -> ``assets.id`` and
      ``assets.counterparty_lead_id`` -> ``leads.id``.  No cascades: deleting a
      referenced row fails.
    - Ledger rows are append-only once ``register_ledger_immutability`` ran.

Failure modes:
    - IntegrityError on a delete blocked by a foreign key.
    - LedgerImmutabilityError on UPDATE/DELETE of a ledger row.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import JSON, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from realty_kernel.db.base import TrackedBase
from realty_kernel.db.immutability import register_immutability_listeners
from realty_modules.transactions.records import ASSETS, LEADS, LEDGER_ENTRIES


# =============================================================================
# Lead
# =============================================================================


class LeadModel(TrackedBase):
    """A prospective client; only ``status`` is touched by the ledger."""

    __tablename__ = LEADS

    name: Mapped[str] = mapped_column(String(200), default="")
    status: Mapped[str] = mapped_column(String(50), default="New")
    phone: Mapped[str] = mapped_column(String(50), default="")
    email: Mapped[str] = mapped_column(String(200), default="")
    agency_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


# =============================================================================
# Asset
# =============================================================================


class AssetModel(TrackedBase):
    """
    A listed property and, once closed, its current contract period.

    Guarantees:
        - ``kind`` is one of: Sale, RentalAnnual, RentalSeasonal.
        - ``status`` is one of: Active, Closed.
        - Period fields are NULL/zero while Active.
    """

    __tablename__ = ASSETS

    __table_args__ = (
        Index("idx_asset_status", "status"),
        Index("idx_asset_agency", "agency_id"),
    )

    kind: Mapped[str] = mapped_column(String(50))
    list_price: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(50), default="Active")
    closed_at: Mapped[date | None] = mapped_column(Date, nullable=True)
    counterparty_lead_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("leads.id"), nullable=True
    )
    closed_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    period_value: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    period_commission: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    period_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    commission_splits: Mapped[list] = mapped_column(JSON, default=list)
    agency_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    broker_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    title: Mapped[str] = mapped_column(String(300), default="")
    notes: Mapped[str] = mapped_column(Text, default="")


# =============================================================================
# Ledger entry
# =============================================================================


class LedgerEntryModel(TrackedBase):
    """
    One archived contract period.  Append-only.

    Guarantees:
        - ``asset_id`` references assets.id.
        - ``period_end`` equals the ``closed_at`` of the period that replaced it.
    """

    __tablename__ = LEDGER_ENTRIES

    __table_args__ = (
        Index("idx_ledger_asset_period_end", "asset_id", "period_end"),
    )

    asset_id: Mapped[str] = mapped_column(String(64), ForeignKey("assets.id"))
    kind: Mapped[str] = mapped_column(String(50))
    value: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    commission: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    recorded_at: Mapped[date] = mapped_column(Date)
    period_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    period_end: Mapped[date] = mapped_column(Date)
    agency_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    counterparty_lead_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    closed_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


TABLE_MODELS: dict[str, type[TrackedBase]] = {
    ASSETS: AssetModel,
    LEADS: LeadModel,
    LEDGER_ENTRIES: LedgerEntryModel,
}


def register_ledger_immutability() -> None:
    """Install the append-only listeners on ledger rows (idempotent)."""
    register_immutability_listeners(LedgerEntryModel)
