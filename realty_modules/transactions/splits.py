"""
Commission Split Pure Functions.

A commission is divided among beneficiaries, each share held redundantly as a
percentage and a currency value.  Every function takes a tuple of splits and
returns a new tuple; the input is never modified.

- Editing a percentage recomputes the value, editing a value recomputes the
  percentage.
- Totals are only validated when the list is saved (``is_valid``).
- ``normalize_for_persistence`` rounds both figures so repeated edits do not
  accumulate drift in stored data.
"""

from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from realty_kernel.exceptions import DuplicateBeneficiaryError, SplitIndexError
from realty_modules.transactions.models import (
    Beneficiary,
    BeneficiaryType,
    CommissionSplit,
)

HUNDRED = Decimal("100")
DEFAULT_TOLERANCE = Decimal("0.5")


@dataclass(frozen=True)
class SplitTotals:
    total_percentage: Decimal
    total_value: Decimal
    remaining_value: Decimal


def _check_index(splits: Sequence[CommissionSplit], index: int) -> None:
    if not 0 <= index < len(splits):
        raise SplitIndexError(index, len(splits))


def _replace_at(
    splits: Sequence[CommissionSplit], index: int, split: CommissionSplit
) -> tuple[CommissionSplit, ...]:
    updated = list(splits)
    updated[index] = split
    return tuple(updated)


def set_by_percentage(
    splits: Sequence[CommissionSplit],
    index: int,
    percentage: Decimal,
    total_commission: Decimal,
) -> tuple[CommissionSplit, ...]:
    """
    Set the percentage of one split and derive its value.

    value = total_commission * percentage / 100.  No-op when the total
    commission is zero.
    """
    _check_index(splits, index)
    if total_commission == 0:
        return tuple(splits)
    percentage = Decimal(percentage)
    value = total_commission * percentage / HUNDRED
    return _replace_at(splits, index, replace(splits[index], percentage=percentage, value=value))


def set_by_value(
    splits: Sequence[CommissionSplit],
    index: int,
    value: Decimal,
    total_commission: Decimal,
) -> tuple[CommissionSplit, ...]:
    """
    Set the currency value of one split and derive its percentage.

    percentage = value / total_commission * 100.  No-op when the total
    commission is zero.
    """
    _check_index(splits, index)
    if total_commission == 0:
        return tuple(splits)
    value = Decimal(value)
    percentage = value / total_commission * HUNDRED
    return _replace_at(splits, index, replace(splits[index], percentage=percentage, value=value))


def add_beneficiary(
    splits: Sequence[CommissionSplit],
    beneficiary: Beneficiary,
) -> tuple[CommissionSplit, ...]:
    """
    Append a zero-share entry for ``beneficiary``.

    Raises:
        DuplicateBeneficiaryError: the beneficiary already has an entry.
    """
    if any(s.beneficiary_id == beneficiary.id for s in splits):
        raise DuplicateBeneficiaryError(beneficiary.id)
    return (
        *splits,
        CommissionSplit(
            beneficiary_type=beneficiary.beneficiary_type,
            beneficiary_id=beneficiary.id,
            beneficiary_name=beneficiary.name,
        ),
    )


def remove_beneficiary(
    splits: Sequence[CommissionSplit],
    index: int,
) -> tuple[CommissionSplit, ...]:
    """Drop the entry at ``index``.  Remaining shares are left as they are."""
    _check_index(splits, index)
    return tuple(s for i, s in enumerate(splits) if i != index)


def total_percentage(splits: Sequence[CommissionSplit]) -> Decimal:
    return sum((s.percentage for s in splits), Decimal("0"))


def is_valid(
    splits: Sequence[CommissionSplit],
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> bool:
    """True iff |sum(percentage) - 100| <= tolerance."""
    return abs(total_percentage(splits) - HUNDRED) <= tolerance


def split_totals(
    splits: Sequence[CommissionSplit],
    total_commission: Decimal,
) -> SplitTotals:
    """Totals shown while editing: percentage sum, value sum, value left to assign."""
    total_value = sum((s.value for s in splits), Decimal("0"))
    return SplitTotals(
        total_percentage=total_percentage(splits),
        total_value=total_value,
        remaining_value=total_commission - total_value,
    )


def normalize_for_persistence(
    splits: Sequence[CommissionSplit],
    places: int = 2,
) -> tuple[CommissionSplit, ...]:
    """Round every percentage and value to ``places`` decimals (half-up)."""
    quantum = Decimal(1).scaleb(-places)
    return tuple(
        replace(
            s,
            percentage=s.percentage.quantize(quantum, rounding=ROUND_HALF_UP),
            value=s.value.quantize(quantum, rounding=ROUND_HALF_UP),
        )
        for s in splits
    )


def default_splits(
    total_commission: Decimal,
    agency: Beneficiary,
    broker: Beneficiary | None = None,
    agency_share: Decimal = Decimal("50"),
) -> tuple[CommissionSplit, ...]:
    """
    Initial distribution for a freshly closed asset.

    Agency ``agency_share``% / broker the rest when a broker is known,
    otherwise agency 100%.
    """
    if broker is None:
        return (
            CommissionSplit(
                beneficiary_type=BeneficiaryType.AGENCY,
                beneficiary_id=agency.id,
                beneficiary_name=agency.name,
                percentage=HUNDRED,
                value=total_commission,
            ),
        )
    broker_share = HUNDRED - agency_share
    return (
        CommissionSplit(
            beneficiary_type=BeneficiaryType.AGENCY,
            beneficiary_id=agency.id,
            beneficiary_name=agency.name,
            percentage=agency_share,
            value=total_commission * agency_share / HUNDRED,
        ),
        CommissionSplit(
            beneficiary_type=BeneficiaryType.BROKER,
            beneficiary_id=broker.id,
            beneficiary_name=broker.name,
            percentage=broker_share,
            value=total_commission * broker_share / HUNDRED,
        ),
    )
