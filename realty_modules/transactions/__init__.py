"""
Transaction & Commission Ledger (``realty_modules.transactions``).

Responsibility
--------------
Lifecycle of listed assets once a deal is made: closing a sale or rental,
reactivating it, renewing or readjusting a rental contract, distributing the
commission between agency and brokers, and resolving which contract period
is actually in force on a given day.

Architecture position
---------------------
**Modules layer** -- pure functions (``transitions``, ``splits``,
``resolver``, ``reports``) plus ``TransactionService``, the only component
that writes to a ``RecordStore``.

Invariants enforced
-------------------
* The ledger is append-only; history is never rewritten.
* The newest ledger entry of an asset ends exactly where the asset's current
  period starts.
* Split percentages total 100 (within tolerance) whenever they are saved.

Failure modes
-------------
* ``ValidationError`` before any write; ``PersistenceError`` or
  ``PartiallyAppliedError`` after.
"""

from realty_modules.transactions.config import TransactionConfig
from realty_modules.transactions.models import (
    Asset,
    AssetKind,
    AssetStatus,
    Beneficiary,
    BeneficiaryType,
    CloseOutcome,
    CloseRequest,
    CommissionSplit,
    EffectiveFinancials,
    EffectiveStatus,
    Lead,
    LeadStatus,
    LedgerEntry,
    LedgerKind,
    PeriodChangeOutcome,
    ReactivationOutcome,
    ReadjustmentRequest,
    RenewalRequest,
)
from realty_modules.transactions.records import create_memory_store
from realty_modules.transactions.resolver import (
    effective_financials,
    find_chained_entry,
    period_history,
)
from realty_modules.transactions.service import TransactionService
from realty_modules.transactions.workflows import ASSET_LIFECYCLE_WORKFLOW

__all__ = [
    # Config
    "TransactionConfig",
    # Models
    "Asset",
    "AssetKind",
    "AssetStatus",
    "Beneficiary",
    "BeneficiaryType",
    "CommissionSplit",
    "Lead",
    "LeadStatus",
    "LedgerEntry",
    "LedgerKind",
    "EffectiveFinancials",
    "EffectiveStatus",
    # Requests / outcomes
    "CloseRequest",
    "RenewalRequest",
    "ReadjustmentRequest",
    "CloseOutcome",
    "PeriodChangeOutcome",
    "ReactivationOutcome",
    # Resolver
    "effective_financials",
    "find_chained_entry",
    "period_history",
    # Service
    "TransactionService",
    "create_memory_store",
    # Workflow
    "ASSET_LIFECYCLE_WORKFLOW",
]
