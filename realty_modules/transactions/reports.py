"""
Portfolio reports over closed assets.

Every figure that depends on the period in force goes through
``resolver.effective_financials`` so a readjustment recorded ahead of its
effective date never shows up as income early.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from realty_modules.transactions.models import (
    ZERO,
    Asset,
    AssetKind,
    BeneficiaryType,
    EffectiveStatus,
    LedgerEntry,
)
from realty_modules.transactions.resolver import effective_financials


@dataclass(frozen=True)
class RentalPortfolioSummary:
    managed_count: int
    monthly_revenue: Decimal
    total_contract_value: Decimal
    pending_count: int = 0


@dataclass(frozen=True)
class MonthlyTotal:
    month: date
    value: Decimal


@dataclass(frozen=True)
class SalesSummary:
    count: int
    total_value: Decimal
    total_commission: Decimal
    monthly: tuple[MonthlyTotal, ...]


@dataclass(frozen=True)
class MonthlyCommission:
    """Commission earned in one month, by beneficiary type."""
    month: date
    agency: Decimal
    broker: Decimal
    unassigned: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.agency + self.broker + self.unassigned


def _month_index(day: date) -> int:
    return day.year * 12 + day.month - 1


def _trailing_months(reference_date: date, months: int) -> list[date]:
    """First day of each of the last ``months`` months, oldest first."""
    last = _month_index(reference_date)
    return [date(i // 12, i % 12 + 1, 1) for i in range(last - months + 1, last + 1)]


def rental_portfolio_summary(
    assets: Iterable[Asset],
    ledger_entries: Iterable[LedgerEntry],
    reference_date: date,
) -> RentalPortfolioSummary:
    """
    Managed rentals (closed rentals with a commission) and their income.

    Revenue and contract value sum the effective figures of contracts in
    force; contracts whose first period has not started are only counted in
    ``pending_count``.
    """
    entries = tuple(ledger_entries)
    managed = pending = 0
    revenue = contract_value = ZERO
    for asset in assets:
        if not (asset.is_closed and asset.is_rental and asset.period_commission > 0):
            continue
        managed += 1
        financials = effective_financials(asset, entries, reference_date)
        if financials.status is EffectiveStatus.NOT_STARTED:
            pending += 1
            continue
        revenue += financials.commission
        contract_value += financials.value
    return RentalPortfolioSummary(
        managed_count=managed,
        monthly_revenue=revenue,
        total_contract_value=contract_value,
        pending_count=pending,
    )


def sales_summary(
    assets: Iterable[Asset],
    reference_date: date,
    months: int = 12,
) -> SalesSummary:
    """Internal sales (closed, value > 0) up to ``reference_date`` with monthly buckets."""
    if months < 1:
        raise ValueError("months must be at least 1")
    buckets = {m: ZERO for m in _trailing_months(reference_date, months)}
    count = 0
    total_value = total_commission = ZERO
    for asset in assets:
        if asset.kind is not AssetKind.SALE or asset.period_value <= 0:
            continue
        financials = effective_financials(asset, (), reference_date)
        if financials.status is not EffectiveStatus.CURRENT:
            continue
        count += 1
        total_value += financials.value
        total_commission += financials.commission
        month = asset.closed_at.replace(day=1)
        if month in buckets:
            buckets[month] += financials.value
    return SalesSummary(
        count=count,
        total_value=total_value,
        total_commission=total_commission,
        monthly=tuple(MonthlyTotal(m, v) for m, v in buckets.items()),
    )


def commission_performance(
    assets: Iterable[Asset],
    reference_date: date,
    months: int = 6,
) -> tuple[MonthlyCommission, ...]:
    """
    Agency vs broker commission per month for assets closed in the window.

    Assets closed without a saved distribution count as ``unassigned``.
    """
    if months < 1:
        raise ValueError("months must be at least 1")
    window = _trailing_months(reference_date, months)
    totals = {m: {"agency": ZERO, "broker": ZERO, "unassigned": ZERO} for m in window}
    for asset in assets:
        if not asset.is_closed or asset.closed_at is None or asset.closed_at > reference_date:
            continue
        bucket = totals.get(asset.closed_at.replace(day=1))
        if bucket is None:
            continue
        if not asset.commission_splits:
            bucket["unassigned"] += asset.period_commission
            continue
        for split in asset.commission_splits:
            key = "agency" if split.beneficiary_type is BeneficiaryType.AGENCY else "broker"
            bucket[key] += split.value
    return tuple(MonthlyCommission(month=m, **totals[m]) for m in window)
