"""
Transaction Ledger Service (``realty_modules.transactions.service``).

Responsibility
--------------
Orchestrates the asset lifecycle -- closing, reactivation, renewal,
readjustment -- and commission distribution by delegating validation and
entity construction to ``transitions.py`` / ``splits.py`` and persistence to
a ``RecordStore``.

Architecture position
---------------------
**Modules layer** -- thin glue.  ``TransactionService`` is the sole public
entry point for operations that write.  Pure functions stay pure; this class
owns the store calls and the order in which they happen.

Invariants enforced
-------------------
* Validation runs before the first store write.
* Entities passed in are never mutated; every operation returns new ones
  built from the records the store handed back.
* Ledger entries are appended BEFORE the asset moves its ``closed_at`` onto
  them, so a committed asset period always has its predecessor archived.
* All money is ``Decimal`` -- NEVER ``float``.

Failure modes
-------------
* ``ValidationError`` subclasses  -> raised before any write.
* First write fails  -> the store's ``PersistenceError`` propagates; nothing
  was written.
* Second write fails  -> ``PartiallyAppliedError`` carrying the committed
  entity and the name of the step that failed.

Audit relevance
---------------
Structured log events at start and completion of every operation carrying
asset ids, amounts and ledger entry ids.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date
from decimal import Decimal

from realty_kernel.domain.clock import Clock, SystemClock
from realty_kernel.exceptions import (
    InvalidTransitionError,
    PartiallyAppliedError,
    PersistenceError,
    RealtyLedgerError,
    RecordNotFoundError,
    SplitTotalError,
)
from realty_kernel.logging_config import LogContext, get_logger
from realty_kernel.store.base import RecordFilter, RecordStore
from realty_modules.transactions.config import TransactionConfig
from realty_modules.transactions.models import (
    Asset,
    Beneficiary,
    BeneficiaryType,
    CloseOutcome,
    CloseRequest,
    CommissionSplit,
    EffectiveFinancials,
    Lead,
    LedgerEntry,
    PeriodChangeOutcome,
    ReactivationOutcome,
    ReadjustmentRequest,
    RenewalRequest,
)
from realty_modules.transactions.records import (
    ASSETS,
    LEADS,
    LEDGER_ENTRIES,
    asset_from_record,
    asset_to_record,
    lead_from_record,
    ledger_entry_from_record,
    ledger_entry_to_record,
    splits_to_record,
)
from realty_modules.transactions.resolver import effective_financials, period_history
from realty_modules.transactions.splits import (
    default_splits,
    is_valid,
    normalize_for_persistence,
    total_percentage,
)
from realty_modules.transactions.transitions import (
    apply_close,
    apply_reactivate,
    apply_readjustment,
    apply_renewal,
    close_lead,
)

logger = get_logger("modules.transactions.service")

# (beneficiary type, id) -> display name; may raise or return None.
NameLookup = Callable[[BeneficiaryType, str], str | None]


class TransactionService:
    """
    Lifecycle and commission operations over a record store.

    Contract
    --------
    * ``close`` / ``reactivate`` / ``renew`` / ``readjust`` return outcome
      objects holding the persisted entities.
    * Read helpers (``load_asset``, ``ledger_for``, ``effective_financials``)
      never write.

    Guarantees
    ----------
    * Clock is injectable for deterministic testing.
    * Display-name lookups fall back to the configured placeholders and log
      a warning; no other failure is swallowed.

    Non-goals
    ---------
    * Does NOT manage transactions across writes; the store commits per call.
    * Does NOT create assets or leads; those belong to the listing layer.
    """

    def __init__(
        self,
        store: RecordStore,
        config: TransactionConfig | None = None,
        clock: Clock | None = None,
        name_lookup: NameLookup | None = None,
    ):
        self._store = store
        self._config = config or TransactionConfig.with_defaults()
        self._clock = clock or SystemClock()
        self._name_lookup = name_lookup

    @property
    def config(self) -> TransactionConfig:
        return self._config

    # =========================================================================
    # Reads
    # =========================================================================

    def load_asset(self, asset_id: str) -> Asset:
        record = self._store.fetch_one(ASSETS, asset_id)
        if record is None:
            raise RecordNotFoundError(ASSETS, asset_id)
        return asset_from_record(record)

    def load_lead(self, lead_id: str) -> Lead:
        record = self._store.fetch_one(LEADS, lead_id)
        if record is None:
            raise RecordNotFoundError(LEADS, lead_id)
        return lead_from_record(record)

    def list_assets(self, agency_id: str | None = None) -> tuple[Asset, ...]:
        """All assets, optionally restricted to one agency."""
        flt = RecordFilter("agency_id", agency_id) if agency_id is not None else None
        return tuple(asset_from_record(r) for r in self._store.fetch_all(ASSETS, flt))

    def ledger_for(self, asset: Asset) -> tuple[LedgerEntry, ...]:
        """Ledger entries of ``asset`` in the order they were recorded."""
        records = self._store.fetch_all(LEDGER_ENTRIES, RecordFilter("asset_id", asset.id))
        return tuple(ledger_entry_from_record(r) for r in records)

    def all_ledger_entries(self) -> tuple[LedgerEntry, ...]:
        return tuple(ledger_entry_from_record(r) for r in self._store.fetch_all(LEDGER_ENTRIES))

    def effective_financials(
        self,
        asset: Asset,
        reference_date: date | None = None,
    ) -> EffectiveFinancials:
        """Value and commission in force on ``reference_date`` (default today)."""
        day = reference_date or self._clock.today()
        return effective_financials(asset, self.ledger_for(asset), day)

    def period_history(self, asset: Asset) -> tuple[LedgerEntry, ...]:
        return period_history(asset, self.ledger_for(asset))

    # =========================================================================
    # Display names
    # =========================================================================

    def counterparty_display_name(self, asset: Asset) -> str:
        """Name of the counterparty lead, or the external-client label."""
        label = self._config.external_counterparty_label
        if asset.counterparty_lead_id is None:
            return label
        try:
            lead = self.load_lead(asset.counterparty_lead_id)
        except RealtyLedgerError as exc:
            logger.warning(
                "counterparty_lookup_failed",
                extra={
                    "asset_id": asset.id,
                    "lead_id": asset.counterparty_lead_id,
                    "error_code": exc.code,
                },
            )
            return label
        return lead.name or label

    def beneficiary_display_name(self, beneficiary_type: BeneficiaryType, beneficiary_id: str) -> str:
        """Resolve a beneficiary's name through the configured lookup."""
        placeholder = self._config.unknown_beneficiary_label
        if self._name_lookup is None:
            return placeholder
        try:
            name = self._name_lookup(beneficiary_type, beneficiary_id)
        except (RealtyLedgerError, LookupError) as exc:
            logger.warning(
                "beneficiary_lookup_failed",
                extra={
                    "beneficiary_type": beneficiary_type.value,
                    "beneficiary_id": beneficiary_id,
                    "error": str(exc),
                },
            )
            return placeholder
        return name or placeholder

    def beneficiary(self, beneficiary_type: BeneficiaryType, beneficiary_id: str) -> Beneficiary:
        return Beneficiary(
            beneficiary_type=beneficiary_type,
            id=beneficiary_id,
            name=self.beneficiary_display_name(beneficiary_type, beneficiary_id),
        )

    # =========================================================================
    # Close
    # =========================================================================

    def close(self, asset: Asset, request: CloseRequest) -> CloseOutcome:
        """
        Close ``asset``; advance the counterparty lead when one is named.

        Raises:
            ValidationError: bad request; nothing written.
            PersistenceError: the asset write failed; nothing written.
            PartiallyAppliedError: the asset is closed but the lead update
                failed.  ``committed`` holds the closed asset.
        """
        with LogContext.bind(asset_id=asset.id, agency_id=asset.agency_id):
            logger.info(
                "asset_close_started",
                extra={
                    "asset_kind": asset.kind.value,
                    "external": request.counterparty_lead_id is None,
                },
            )
            closed = apply_close(asset, request, self._clock.today())

            lead = None
            if closed.counterparty_lead_id is not None:
                lead = self.load_lead(closed.counterparty_lead_id)

            stored = asset_from_record(self._store.update(ASSETS, asset_to_record(closed)))

            if lead is not None:
                advanced = close_lead(lead, self._config.closed_lead_status)
                try:
                    lead = lead_from_record(
                        self._store.update(LEADS, {"id": advanced.id, "status": advanced.status.value})
                    )
                except PersistenceError as exc:
                    logger.error(
                        "asset_close_partially_applied",
                        extra={"failed_step": "lead_update", "lead_id": lead.id},
                    )
                    raise PartiallyAppliedError("close", "lead_update", stored, exc) from exc
                logger.info(
                    "lead_status_updated",
                    extra={"lead_id": lead.id, "lead_status": lead.status.value},
                )

            logger.info(
                "asset_closed",
                extra={
                    "closed_at": stored.closed_at,
                    "period_value": stored.period_value,
                    "period_commission": stored.period_commission,
                    "external": stored.is_external_closing,
                },
            )
            return CloseOutcome(asset=stored, lead=lead)

    # =========================================================================
    # Reactivate
    # =========================================================================

    def reactivate(self, asset: Asset) -> ReactivationOutcome:
        """
        Put a closed asset back on the market.

        The ledger is only written when ``archive_on_reactivate`` is set and
        the rental period has started.
        """
        with LogContext.bind(asset_id=asset.id, agency_id=asset.agency_id):
            reactivated, entry = apply_reactivate(
                asset,
                self._clock.today(),
                archive=self._config.archive_on_reactivate,
            )
            stored_entry = self._append_entry(entry) if entry is not None else None
            stored = self._write_asset_after_entry("reactivate", reactivated, stored_entry)
            logger.info(
                "asset_reactivated",
                extra={"ledger_entry_id": stored_entry.id if stored_entry else None},
            )
            return ReactivationOutcome(asset=stored, ledger_entry=stored_entry)

    # =========================================================================
    # Renew / Readjust
    # =========================================================================

    def renew(self, asset: Asset, request: RenewalRequest) -> PeriodChangeOutcome:
        """
        Start a new contract period for a closed rental.

        Raises:
            PartiallyAppliedError: the ledger entry was appended but the asset
                write failed.  ``committed`` holds the entry.
        """
        with LogContext.bind(asset_id=asset.id, agency_id=asset.agency_id):
            logger.info(
                "asset_renewal_started",
                extra={
                    "new_period_start": request.new_period_start,
                    "new_period_end": request.new_period_end,
                },
            )
            renewed, entry = apply_renewal(asset, request, self._clock.today())
            stored_entry = self._append_entry(entry)
            stored = self._write_asset_after_entry("renew", renewed, stored_entry)
            logger.info(
                "asset_renewed",
                extra={
                    "ledger_entry_id": stored_entry.id,
                    "period_value": stored.period_value,
                    "period_commission": stored.period_commission,
                },
            )
            return PeriodChangeOutcome(asset=stored, ledger_entry=stored_entry)

    def readjust(self, asset: Asset, request: ReadjustmentRequest) -> PeriodChangeOutcome:
        """Change rent and commission of a closed rental from ``effective_date``."""
        with LogContext.bind(asset_id=asset.id, agency_id=asset.agency_id):
            logger.info(
                "asset_readjustment_started",
                extra={"effective_date": request.effective_date},
            )
            readjusted, entry = apply_readjustment(
                asset,
                request,
                self._clock.today(),
                currency_symbol=self._config.currency_symbol,
            )
            stored_entry = self._append_entry(entry)
            stored = self._write_asset_after_entry("readjust", readjusted, stored_entry)
            logger.info(
                "asset_readjusted",
                extra={
                    "ledger_entry_id": stored_entry.id,
                    "period_value": stored.period_value,
                    "period_commission": stored.period_commission,
                },
            )
            return PeriodChangeOutcome(asset=stored, ledger_entry=stored_entry)

    # =========================================================================
    # Commission distribution
    # =========================================================================

    def open_distribution(
        self,
        asset: Asset,
        agency: Beneficiary,
        broker: Beneficiary | None = None,
    ) -> tuple[CommissionSplit, ...]:
        """Splits to edit: the saved list, or the default distribution."""
        if asset.commission_splits:
            return asset.commission_splits
        return default_splits(
            asset.period_commission,
            agency,
            broker,
            agency_share=self._config.agency_default_share,
        )

    def save_distribution(
        self,
        asset: Asset,
        splits: Sequence[CommissionSplit],
    ) -> Asset:
        """
        Validate, round and store the whole split list on the asset.

        Raises:
            InvalidTransitionError: the asset is not closed.
            SplitTotalError: percentages do not total 100 within tolerance.
        """
        if not asset.is_closed:
            raise InvalidTransitionError(
                asset.id, asset.status.value, "distribute", reason="only closed assets earn a commission"
            )
        tolerance = self._config.split_tolerance
        if not is_valid(splits, tolerance):
            raise SplitTotalError(total_percentage(splits), tolerance)
        normalized = normalize_for_persistence(splits, self._config.rounding_places)
        record = self._store.update(
            ASSETS,
            {"id": asset.id, "commission_splits": splits_to_record(normalized)},
        )
        logger.info(
            "commission_distribution_saved",
            extra={
                "asset_id": asset.id,
                "beneficiary_count": len(normalized),
                "total_value": sum((s.value for s in normalized), Decimal("0")),
            },
        )
        return asset_from_record(record)

    # =========================================================================
    # Internal
    # =========================================================================

    def _append_entry(self, entry: LedgerEntry) -> LedgerEntry:
        stored = ledger_entry_from_record(
            self._store.insert(LEDGER_ENTRIES, ledger_entry_to_record(entry))
        )
        logger.info(
            "ledger_entry_appended",
            extra={
                "ledger_entry_id": stored.id,
                "period_start": stored.period_start,
                "period_end": stored.period_end,
                "value": stored.value,
                "commission": stored.commission,
            },
        )
        return stored

    def _write_asset_after_entry(
        self,
        operation: str,
        asset: Asset,
        entry: LedgerEntry | None,
    ) -> Asset:
        try:
            record = self._store.update(ASSETS, asset_to_record(asset))
        except PersistenceError as exc:
            if entry is None:
                raise
            logger.error(
                "ledger_entry_orphaned",
                extra={
                    "operation": operation,
                    "ledger_entry_id": entry.id,
                    "failed_step": "asset_update",
                },
            )
            raise PartiallyAppliedError(operation, "asset_update", entry, exc) from exc
        return asset_from_record(record)
