"""
Typed record schemas for the ``assets``, ``leads`` and ``ledger_entries`` tables.

Store records are loosely typed dicts: dates may arrive as ISO strings or
``datetime`` objects, money as strings, floats or ``Decimal``, enums as their
string values.  Every read goes through ``*_from_record`` which coerces and
validates; every write goes through ``*_to_record``.  Malformed records raise
``RecordSchemaError`` naming the table and field.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, TypeVar

from realty_kernel.exceptions import RecordSchemaError
from realty_kernel.store.base import Record
from realty_kernel.store.memory import InMemoryRecordStore
from realty_modules.transactions.models import (
    ZERO,
    Asset,
    AssetKind,
    AssetStatus,
    BeneficiaryType,
    CommissionSplit,
    Lead,
    LeadStatus,
    LedgerEntry,
    LedgerKind,
)

ASSETS = "assets"
LEADS = "leads"
LEDGER_ENTRIES = "ledger_entries"

# target table -> (referencing table, referencing field)
TABLE_REFERENCES: dict[str, tuple[tuple[str, str], ...]] = {
    LEADS: ((ASSETS, "counterparty_lead_id"),),
    ASSETS: ((LEDGER_ENTRIES, "asset_id"),),
}
APPEND_ONLY_TABLES = (LEDGER_ENTRIES,)

E = TypeVar("E", bound=Enum)


def create_memory_store() -> InMemoryRecordStore:
    """In-memory store with this module's references and append-only tables."""
    return InMemoryRecordStore(references=TABLE_REFERENCES, append_only=APPEND_ONLY_TABLES)


# =============================================================================
# Coercion helpers
# =============================================================================


def _required(record: Record, table: str, field: str) -> Any:
    value = record.get(field)
    if value is None:
        raise RecordSchemaError(table, field, value, "required field is missing")
    return value


def _decimal(table: str, field: str, value: Any, default: Decimal | None = ZERO) -> Decimal | None:
    if value is None:
        return default
    if isinstance(value, bool):
        raise RecordSchemaError(table, field, value, "expected a number")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise RecordSchemaError(table, field, value, "expected a number") from None


def _date(table: str, field: str, value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            raise RecordSchemaError(table, field, value, "expected an ISO date") from None
    raise RecordSchemaError(table, field, value, "expected a date")


def _enum(table: str, field: str, enum_cls: type[E], value: Any) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise RecordSchemaError(table, field, value, f"expected one of: {allowed}") from None


def _str(value: Any) -> str | None:
    return None if value is None else str(value)


# =============================================================================
# Commission splits (stored as a JSON list on the asset)
# =============================================================================


def splits_from_record(value: Any) -> tuple[CommissionSplit, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise RecordSchemaError(ASSETS, "commission_splits", value, "expected a list")
    field = "commission_splits"
    return tuple(
        CommissionSplit(
            beneficiary_type=_enum(ASSETS, field, BeneficiaryType, _required(item, ASSETS, "beneficiary_type")),
            beneficiary_id=str(_required(item, ASSETS, "beneficiary_id")),
            beneficiary_name=str(item.get("beneficiary_name") or ""),
            percentage=_decimal(ASSETS, field, item.get("percentage")),
            value=_decimal(ASSETS, field, item.get("value")),
        )
        for item in value
    )


def splits_to_record(splits: tuple[CommissionSplit, ...]) -> list[dict[str, str]]:
    return [
        {
            "beneficiary_type": s.beneficiary_type.value,
            "beneficiary_id": s.beneficiary_id,
            "beneficiary_name": s.beneficiary_name,
            "percentage": str(s.percentage),
            "value": str(s.value),
        }
        for s in splits
    ]


# =============================================================================
# Assets
# =============================================================================


def asset_from_record(record: Record) -> Asset:
    t = ASSETS
    return Asset(
        id=str(_required(record, t, "id")),
        kind=_enum(t, "kind", AssetKind, _required(record, t, "kind")),
        list_price=_decimal(t, "list_price", record.get("list_price")),
        status=_enum(t, "status", AssetStatus, record.get("status") or AssetStatus.ACTIVE.value),
        closed_at=_date(t, "closed_at", record.get("closed_at")),
        counterparty_lead_id=_str(record.get("counterparty_lead_id")),
        closed_by_user_id=_str(record.get("closed_by_user_id")),
        period_value=_decimal(t, "period_value", record.get("period_value")),
        period_commission=_decimal(t, "period_commission", record.get("period_commission")),
        period_end_date=_date(t, "period_end_date", record.get("period_end_date")),
        commission_splits=splits_from_record(record.get("commission_splits")),
        agency_id=_str(record.get("agency_id")),
        broker_id=_str(record.get("broker_id")),
        title=str(record.get("title") or ""),
        notes=str(record.get("notes") or ""),
    )


def asset_to_record(asset: Asset) -> Record:
    return {
        "id": asset.id,
        "kind": asset.kind.value,
        "list_price": asset.list_price,
        "status": asset.status.value,
        "closed_at": asset.closed_at,
        "counterparty_lead_id": asset.counterparty_lead_id,
        "closed_by_user_id": asset.closed_by_user_id,
        "period_value": asset.period_value,
        "period_commission": asset.period_commission,
        "period_end_date": asset.period_end_date,
        "commission_splits": splits_to_record(asset.commission_splits),
        "agency_id": asset.agency_id,
        "broker_id": asset.broker_id,
        "title": asset.title,
        "notes": asset.notes,
    }


# =============================================================================
# Ledger entries
# =============================================================================


def ledger_entry_from_record(record: Record) -> LedgerEntry:
    t = LEDGER_ENTRIES
    period_end = _date(t, "period_end", _required(record, t, "period_end"))
    return LedgerEntry(
        id=str(_required(record, t, "id")),
        asset_id=str(_required(record, t, "asset_id")),
        kind=_enum(t, "kind", LedgerKind, _required(record, t, "kind")),
        value=_decimal(t, "value", record.get("value")),
        commission=_decimal(t, "commission", record.get("commission")),
        recorded_at=_date(t, "recorded_at", _required(record, t, "recorded_at")),
        period_start=_date(t, "period_start", record.get("period_start")),
        period_end=period_end,
        agency_id=_str(record.get("agency_id")),
        counterparty_lead_id=_str(record.get("counterparty_lead_id")),
        closed_by_user_id=_str(record.get("closed_by_user_id")),
    )


def ledger_entry_to_record(entry: LedgerEntry) -> Record:
    return {
        "id": entry.id,
        "asset_id": entry.asset_id,
        "kind": entry.kind.value,
        "value": entry.value,
        "commission": entry.commission,
        "recorded_at": entry.recorded_at,
        "period_start": entry.period_start,
        "period_end": entry.period_end,
        "agency_id": entry.agency_id,
        "counterparty_lead_id": entry.counterparty_lead_id,
        "closed_by_user_id": entry.closed_by_user_id,
    }


# =============================================================================
# Leads
# =============================================================================


def lead_from_record(record: Record) -> Lead:
    t = LEADS
    return Lead(
        id=str(_required(record, t, "id")),
        name=str(record.get("name") or ""),
        status=_enum(t, "status", LeadStatus, record.get("status") or LeadStatus.NEW.value),
        phone=str(record.get("phone") or ""),
        email=str(record.get("email") or ""),
        agency_id=_str(record.get("agency_id")),
    )


def lead_to_record(lead: Lead) -> Record:
    return {
        "id": lead.id,
        "name": lead.name,
        "status": lead.status.value,
        "phone": lead.phone,
        "email": lead.email,
        "agency_id": lead.agency_id,
    }
