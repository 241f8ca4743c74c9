"""
Transaction State Machine -- pure transitions.

Each ``apply_*`` function validates its inputs against the asset lifecycle
workflow and returns NEW entities (asset, ledger entry, lead).  Nothing is
written here; ``TransactionService`` persists the results.  All validation
happens before the service touches the store.

Ledger chain contract
---------------------
``renew`` and ``readjust`` archive the current period as a ``LedgerEntry``
whose ``period_end`` is exactly the new ``closed_at``.  The resolver relies on
this equality to find the period in force while a future-dated change is
pending.  The new start must fall strictly after the current ``closed_at``, so
a pending period is never archived with an empty or inverted window.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

from realty_kernel.domain.workflow import Transition
from realty_kernel.exceptions import (
    InvalidAmountError,
    InvalidPeriodError,
    InvalidTransitionError,
    MissingCounterpartyAgentError,
)
from realty_modules.transactions.models import (
    ZERO,
    Asset,
    AssetStatus,
    CloseRequest,
    Lead,
    LeadStatus,
    LedgerEntry,
    LedgerKind,
    ReadjustmentRequest,
    RenewalRequest,
)
from realty_modules.transactions.workflows import (
    ACTIVE,
    ASSET_LIFECYCLE_WORKFLOW,
    CLOSED,
    RENTAL_ONLY,
)


def require_transition(asset: Asset, action: str) -> Transition:
    """
    Look up ``action`` from the asset's current state.

    Raises:
        InvalidTransitionError: no such transition, or its guard fails.
    """
    state = CLOSED if asset.is_closed else ACTIVE
    transition = ASSET_LIFECYCLE_WORKFLOW.transition_for(state, action)
    if transition is None:
        raise InvalidTransitionError(asset.id, asset.status.value, action)
    if transition.guard is RENTAL_ONLY and not asset.is_rental:
        raise InvalidTransitionError(
            asset.id, asset.status.value, action, reason="only rentals have contract periods"
        )
    return transition


def _require_non_negative(field: str, amount: Decimal) -> None:
    if amount < 0:
        raise InvalidAmountError(field, amount)


def _require_after_current_start(asset: Asset, new_start: date, what: str) -> None:
    # an archived period must end strictly after it began
    if asset.closed_at is not None and new_start <= asset.closed_at:
        raise InvalidPeriodError(
            asset.id, f"{what} must be after the current period start {asset.closed_at.isoformat()}"
        )


def _archive_entry(asset: Asset, period_end: date, today: date) -> LedgerEntry:
    return LedgerEntry(
        id=str(uuid4()),
        asset_id=asset.id,
        kind=LedgerKind.for_asset_kind(asset.kind),
        value=asset.period_value,
        commission=asset.period_commission,
        recorded_at=today,
        period_start=asset.closed_at,
        period_end=period_end,
        agency_id=asset.agency_id,
        counterparty_lead_id=asset.counterparty_lead_id,
        closed_by_user_id=asset.closed_by_user_id,
    )


# =============================================================================
# Close
# =============================================================================


def apply_close(asset: Asset, request: CloseRequest, today: date) -> Asset:
    """
    Close an active asset.

    Internal closings copy value and commission.  External closings (no
    counterparty) record the status change only, with zero value and
    commission.  Stale commission splits are always cleared.
    """
    require_transition(asset, "close")

    if request.counterparty_lead_id is not None and not request.closed_by_user_id:
        raise MissingCounterpartyAgentError(asset.id, request.counterparty_lead_id)

    start = request.period_start or today
    if asset.is_rental:
        if request.period_end_date is None:
            raise InvalidPeriodError(asset.id, "rental closing requires an end date")
        if request.period_end_date <= start:
            raise InvalidPeriodError(asset.id, "end date must be after start date")

    external = request.counterparty_lead_id is None
    if not external:
        _require_non_negative("period_value", request.period_value)
        _require_non_negative("commission_amount", request.commission_amount)

    return replace(
        asset,
        status=AssetStatus.CLOSED,
        closed_at=start,
        counterparty_lead_id=request.counterparty_lead_id,
        closed_by_user_id=request.closed_by_user_id,
        period_value=ZERO if external else request.period_value,
        period_commission=ZERO if external else request.commission_amount,
        period_end_date=request.period_end_date,
        commission_splits=(),
    )


def close_lead(lead: Lead, status: LeadStatus = LeadStatus.CLOSED) -> Lead:
    """Advance the counterparty lead to the terminal closed status."""
    return replace(lead, status=status)


# =============================================================================
# Reactivate
# =============================================================================


def apply_reactivate(
    asset: Asset,
    today: date,
    archive: bool = False,
) -> tuple[Asset, LedgerEntry | None]:
    """
    Return a closed asset to the market, clearing every period field.

    With ``archive=True`` a rental whose period has started gets a terminal
    ledger entry ending today; otherwise the ledger is untouched.
    """
    require_transition(asset, "reactivate")

    entry = None
    if archive and asset.is_rental and asset.closed_at is not None and asset.closed_at <= today:
        entry = _archive_entry(asset, period_end=today, today=today)

    reactivated = replace(
        asset,
        status=AssetStatus.ACTIVE,
        closed_at=None,
        counterparty_lead_id=None,
        closed_by_user_id=None,
        period_value=ZERO,
        period_commission=ZERO,
        period_end_date=None,
        commission_splits=(),
    )
    return reactivated, entry


# =============================================================================
# Renew / Readjust
# =============================================================================


def apply_renewal(
    asset: Asset,
    request: RenewalRequest,
    today: date,
) -> tuple[Asset, LedgerEntry]:
    """Start a new rental period, archiving the current one up to its start."""
    require_transition(asset, "renew")
    if request.new_period_end <= request.new_period_start:
        raise InvalidPeriodError(asset.id, "end date must be after start date")
    _require_after_current_start(asset, request.new_period_start, "renewal start")
    _require_non_negative("new_value", request.new_value)
    _require_non_negative("new_commission", request.new_commission)

    entry = _archive_entry(asset, period_end=request.new_period_start, today=today)
    renewed = replace(
        asset,
        period_value=request.new_value,
        period_commission=request.new_commission,
        closed_at=request.new_period_start,
        period_end_date=request.new_period_end,
    )
    return renewed, entry


def readjustment_note(
    asset: Asset,
    request: ReadjustmentRequest,
    currency_symbol: str = "R$",
) -> str:
    """Audit line appended to the asset notes on readjustment."""
    return (
        f"\n[Readjustment on {request.effective_date:%d/%m/%Y}]: "
        f"rent from {currency_symbol}{asset.period_value:.2f} "
        f"to {currency_symbol}{request.new_value:.2f}. "
        f"Commission from {currency_symbol}{asset.period_commission:.2f} "
        f"to {currency_symbol}{request.new_commission:.2f}."
    )


def apply_readjustment(
    asset: Asset,
    request: ReadjustmentRequest,
    today: date,
    currency_symbol: str = "R$",
) -> tuple[Asset, LedgerEntry]:
    """Change rent and commission mid-contract; the end date is kept."""
    require_transition(asset, "readjust")
    if asset.period_end_date is not None and request.effective_date >= asset.period_end_date:
        raise InvalidPeriodError(asset.id, "readjustment date must be before the contract end date")
    _require_after_current_start(asset, request.effective_date, "readjustment date")
    _require_non_negative("new_value", request.new_value)
    _require_non_negative("new_commission", request.new_commission)

    entry = _archive_entry(asset, period_end=request.effective_date, today=today)
    readjusted = replace(
        asset,
        period_value=request.new_value,
        period_commission=request.new_commission,
        closed_at=request.effective_date,
        notes=asset.notes + readjustment_note(asset, request, currency_symbol),
    )
    return readjusted, entry
