"""
Transaction Ledger Domain Models (``realty_modules.transactions.models``).

Responsibility
--------------
Frozen dataclass value objects for the nouns of the transaction ledger:
assets (listings) and their current contractual period, commission splits,
historical ledger entries, the counterparty lead, operation requests and
operation outcomes.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Transitions take
these objects and return new ones; nothing here is mutated in place.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields and percentages use ``Decimal`` -- NEVER ``float``.
* A ``LedgerEntry`` is never modified after creation.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

ZERO = Decimal("0")


class AssetKind(Enum):
    """What the listing is offered for."""
    SALE = "Sale"
    RENTAL_ANNUAL = "RentalAnnual"
    RENTAL_SEASONAL = "RentalSeasonal"

    @property
    def is_rental(self) -> bool:
        return self is not AssetKind.SALE


class AssetStatus(Enum):
    """Closed means sold, or currently rented."""
    ACTIVE = "Active"
    CLOSED = "Closed"


class LedgerKind(Enum):
    SALE = "Sale"
    RENTAL = "Rental"

    @classmethod
    def for_asset_kind(cls, kind: AssetKind) -> "LedgerKind":
        return cls.RENTAL if kind.is_rental else cls.SALE


class BeneficiaryType(Enum):
    AGENCY = "Agency"
    BROKER = "Broker"


class LeadStatus(Enum):
    """Lead pipeline status.  ``CLOSED`` is the terminal status set on closing."""
    NEW = "New"
    CONTACTED = "Contacted"
    VISITING = "Visiting"
    NEGOTIATION = "Negotiation"
    CLOSED = "Closed"
    LOST = "Lost"


class EffectiveStatus(Enum):
    """Where the effective figures came from."""
    CURRENT = "current"            # asset's own period has started
    FROM_LEDGER = "from_ledger"    # a scheduled change is pending; prior period applies
    NOT_STARTED = "not_started"    # brand-new contract that has not begun yet
    INACTIVE = "inactive"          # asset is not closed


@dataclass(frozen=True)
class CommissionSplit:
    """One beneficiary's share of a commission."""
    beneficiary_type: BeneficiaryType
    beneficiary_id: str
    beneficiary_name: str
    percentage: Decimal = ZERO
    value: Decimal = ZERO


@dataclass(frozen=True)
class Beneficiary:
    """Someone who can receive part of a commission."""
    beneficiary_type: BeneficiaryType
    id: str
    name: str


@dataclass(frozen=True)
class Asset:
    """A property listing and its current contractual period."""
    id: str
    kind: AssetKind
    list_price: Decimal = ZERO
    status: AssetStatus = AssetStatus.ACTIVE
    closed_at: date | None = None
    counterparty_lead_id: str | None = None
    closed_by_user_id: str | None = None
    period_value: Decimal = ZERO
    period_commission: Decimal = ZERO
    period_end_date: date | None = None
    commission_splits: tuple[CommissionSplit, ...] = ()
    agency_id: str | None = None
    broker_id: str | None = None
    title: str = ""
    notes: str = ""

    @property
    def is_closed(self) -> bool:
        return self.status is AssetStatus.CLOSED

    @property
    def is_rental(self) -> bool:
        return self.kind.is_rental

    @property
    def is_external_closing(self) -> bool:
        """Closed without an internal counterparty."""
        return self.is_closed and self.counterparty_lead_id is None


@dataclass(frozen=True)
class LedgerEntry:
    """A past contractual period of an asset.  Append-only."""
    id: str
    asset_id: str
    kind: LedgerKind
    value: Decimal
    commission: Decimal
    recorded_at: date
    period_start: date | None
    period_end: date
    agency_id: str | None = None
    counterparty_lead_id: str | None = None
    closed_by_user_id: str | None = None


@dataclass(frozen=True)
class Lead:
    """A prospective buyer or tenant (referenced, not owned)."""
    id: str
    name: str
    status: LeadStatus = LeadStatus.NEW
    phone: str = ""
    email: str = ""
    agency_id: str | None = None


# =============================================================================
# Requests
# =============================================================================


@dataclass(frozen=True)
class CloseRequest:
    """Inputs for closing an asset (sale or rental)."""
    period_value: Decimal = ZERO
    commission_amount: Decimal = ZERO
    counterparty_lead_id: str | None = None
    closed_by_user_id: str | None = None
    period_start: date | None = None
    period_end_date: date | None = None


@dataclass(frozen=True)
class RenewalRequest:
    new_value: Decimal
    new_commission: Decimal
    new_period_start: date
    new_period_end: date


@dataclass(frozen=True)
class ReadjustmentRequest:
    new_value: Decimal
    new_commission: Decimal
    effective_date: date


# =============================================================================
# Outcomes
# =============================================================================


@dataclass(frozen=True)
class CloseOutcome:
    asset: Asset
    lead: Lead | None = None


@dataclass(frozen=True)
class PeriodChangeOutcome:
    """Result of a renewal or readjustment."""
    asset: Asset
    ledger_entry: LedgerEntry


@dataclass(frozen=True)
class ReactivationOutcome:
    asset: Asset
    ledger_entry: LedgerEntry | None = None


@dataclass(frozen=True)
class EffectiveFinancials:
    """The value and commission actually in force on a reference date."""
    value: Decimal
    commission: Decimal
    status: EffectiveStatus
    period_start: date | None = None
    ledger_entry_id: str | None = None

    @property
    def is_in_force(self) -> bool:
        return self.status in (EffectiveStatus.CURRENT, EffectiveStatus.FROM_LEDGER)
