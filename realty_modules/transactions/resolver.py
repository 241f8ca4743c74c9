"""
Effective-Value Resolver.

Renewals and readjustments may be recorded ahead of time with a future start
date.  From that moment the asset's own fields describe a period that has not
begun, while the period actually being collected lives in the ledger entry
whose ``period_end`` equals the asset's ``closed_at``.

Resolution for ``(asset, reference_date)``:

1. asset not closed                    -> zeros, INACTIVE
2. ``closed_at <= reference_date``     -> asset fields, CURRENT
3. chained ledger entry exists         -> entry fields, FROM_LEDGER
4. otherwise (new contract, future)    -> asset fields, NOT_STARTED

Dashboards must aggregate through this module; trusting the asset fields
directly overstates income for every contract with a pending readjustment.
"""

from datetime import date
from typing import Iterable

from realty_modules.transactions.models import (
    ZERO,
    Asset,
    EffectiveFinancials,
    EffectiveStatus,
    LedgerEntry,
)


def find_chained_entry(
    asset: Asset,
    ledger_entries: Iterable[LedgerEntry],
    period_start: date | None = None,
) -> LedgerEntry | None:
    """
    Ledger entry of ``asset`` that ends exactly where ``period_start`` begins.

    ``period_start`` defaults to the asset's ``closed_at``.  When several
    entries qualify the most recently recorded one wins (later position on a
    same-day tie).
    """
    anchor = period_start if period_start is not None else asset.closed_at
    if anchor is None:
        return None
    candidates = [
        (e.recorded_at, position, e)
        for position, e in enumerate(ledger_entries)
        if e.asset_id == asset.id and e.period_end == anchor
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda c: (c[0], c[1]))[2]


def effective_financials(
    asset: Asset,
    ledger_entries: Iterable[LedgerEntry],
    reference_date: date,
) -> EffectiveFinancials:
    """Value and commission in force for ``asset`` on ``reference_date``."""
    if not asset.is_closed or asset.closed_at is None:
        return EffectiveFinancials(value=ZERO, commission=ZERO, status=EffectiveStatus.INACTIVE)

    if asset.closed_at <= reference_date:
        return EffectiveFinancials(
            value=asset.period_value,
            commission=asset.period_commission,
            status=EffectiveStatus.CURRENT,
            period_start=asset.closed_at,
        )

    entry = find_chained_entry(asset, ledger_entries)
    if entry is not None:
        return EffectiveFinancials(
            value=entry.value,
            commission=entry.commission,
            status=EffectiveStatus.FROM_LEDGER,
            period_start=entry.period_start,
            ledger_entry_id=entry.id,
        )

    return EffectiveFinancials(
        value=asset.period_value,
        commission=asset.period_commission,
        status=EffectiveStatus.NOT_STARTED,
        period_start=asset.closed_at,
    )


def period_history(
    asset: Asset,
    ledger_entries: Iterable[LedgerEntry],
) -> tuple[LedgerEntry, ...]:
    """
    Walk the ledger chain backward from the asset's current period.

    Returns entries newest first.  The walk stops at the first gap, at an
    entry without ``period_start``, or if a period start repeats.
    """
    entries = [e for e in ledger_entries if e.asset_id == asset.id]
    chain: list[LedgerEntry] = []
    seen: set[date] = set()
    anchor = asset.closed_at
    while anchor is not None and anchor not in seen:
        seen.add(anchor)
        entry = find_chained_entry(asset, entries, period_start=anchor)
        if entry is None:
            break
        chain.append(entry)
        anchor = entry.period_start
    return tuple(chain)
