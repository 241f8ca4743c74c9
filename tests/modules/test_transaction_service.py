"""
Tests for TransactionService -- lifecycle operations over a record store.

Validates:
- close: internal and external closings, lead side effect, preconditions
- reactivate: field clearing, optional archiving
- renew / readjust: ledger append contract, preconditions, audit note
- failure semantics: first-write failure vs PartiallyAppliedError
- display-name fallbacks
- the same flow over the SQLAlchemy store
"""

from datetime import date
from decimal import Decimal

import pytest

from realty_kernel.exceptions import (
    InvalidAmountError,
    InvalidPeriodError,
    InvalidTransitionError,
    LedgerImmutabilityError,
    MissingCounterpartyAgentError,
    PartiallyAppliedError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from realty_kernel.store.memory import InMemoryRecordStore
from realty_modules.transactions.config import TransactionConfig
from realty_modules.transactions.models import (
    AssetKind,
    AssetStatus,
    BeneficiaryType,
    CloseRequest,
    CommissionSplit,
    Lead,
    LeadStatus,
    ReadjustmentRequest,
    RenewalRequest,
)
from realty_modules.transactions.records import (
    APPEND_ONLY_TABLES,
    ASSETS,
    LEADS,
    LEDGER_ENTRIES,
    TABLE_REFERENCES,
    asset_to_record,
    lead_to_record,
)
from realty_modules.transactions.service import TransactionService
from tests.conftest import AGENCY_ID, AGENT_ID, LEAD_ID, make_asset


class FailingStore(InMemoryRecordStore):
    """In-memory store that fails chosen ``(operation, table)`` writes."""

    def __init__(self, fail_on=()):
        super().__init__(references=TABLE_REFERENCES, append_only=APPEND_ONLY_TABLES)
        self.fail_on = set(fail_on)

    def insert(self, table, record):
        if ("insert", table) in self.fail_on:
            raise PersistenceError("connection lost", table=table)
        return super().insert(table, record)

    def update(self, table, record):
        if ("update", table) in self.fail_on:
            raise PersistenceError("connection lost", table=table, record_id=record.get("id"))
        return super().update(table, record)


def _lead(status=LeadStatus.NEGOTIATION, name="Ana Souza"):
    return Lead(id=LEAD_ID, name=name, status=status, agency_id=AGENCY_ID)


def _sale():
    return make_asset("sale-1", kind=AssetKind.SALE, list_price=Decimal("500000"))


def _closed_rental(**overrides):
    fields = {
        "status": AssetStatus.CLOSED,
        "closed_at": date(2024, 1, 1),
        "period_value": Decimal("2000"),
        "period_commission": Decimal("200"),
        "period_end_date": date(2025, 1, 1),
        "counterparty_lead_id": None,
        "closed_by_user_id": AGENT_ID,
    }
    fields.update(overrides)
    return make_asset(**fields)


def _internal_close(**overrides):
    fields = {
        "period_value": Decimal("480000"),
        "commission_amount": Decimal("24000"),
        "counterparty_lead_id": LEAD_ID,
        "closed_by_user_id": AGENT_ID,
    }
    fields.update(overrides)
    return CloseRequest(**fields)


def _renewal(**overrides):
    fields = {
        "new_value": Decimal("2400"),
        "new_commission": Decimal("240"),
        "new_period_start": date(2025, 1, 1),
        "new_period_end": date(2026, 1, 1),
    }
    fields.update(overrides)
    return RenewalRequest(**fields)


@pytest.fixture
def failing_store():
    return FailingStore()


@pytest.fixture
def failing_service(failing_store, config, deterministic_clock):
    return TransactionService(failing_store, config=config, clock=deterministic_clock)


def _seed(store, *entities):
    for entity in entities:
        if isinstance(entity, Lead):
            store.insert(LEADS, lead_to_record(entity))
        else:
            store.insert(ASSETS, asset_to_record(entity))


# =============================================================================
# Close
# =============================================================================


class TestClose:

    def test_internal_sale_closes_and_advances_lead(self, service, seed):
        seed(_lead(), _sale())

        outcome = service.close(_sale(), _internal_close())

        assert outcome.asset.status is AssetStatus.CLOSED
        assert outcome.asset.closed_at == date(2024, 1, 15)
        assert outcome.asset.period_value == Decimal("480000")
        assert outcome.asset.period_commission == Decimal("24000")
        assert outcome.lead.status is LeadStatus.CLOSED
        assert service.load_lead(LEAD_ID).status is LeadStatus.CLOSED
        assert service.load_asset("sale-1").status is AssetStatus.CLOSED

    def test_lead_moves_to_configured_status(self, memory_store, deterministic_clock):
        svc = TransactionService(
            memory_store,
            config=TransactionConfig(closed_lead_status="Lost"),
            clock=deterministic_clock,
        )
        _seed(memory_store, _lead(), _sale())

        svc.close(_sale(), _internal_close())

        assert svc.config.closed_lead_status is LeadStatus.LOST
        assert svc.load_lead(LEAD_ID).status is LeadStatus.LOST

    def test_external_closing_zeroes_amounts_and_leaves_leads(self, service, seed):
        seed(_lead(), _sale())

        outcome = service.close(
            _sale(),
            CloseRequest(period_value=Decimal("480000"), commission_amount=Decimal("24000")),
        )

        assert outcome.asset.status is AssetStatus.CLOSED
        assert outcome.asset.period_value == 0
        assert outcome.asset.period_commission == 0
        assert outcome.asset.is_external_closing
        assert outcome.lead is None
        assert service.load_lead(LEAD_ID).status is LeadStatus.NEGOTIATION

    def test_counterparty_requires_agent(self, service, seed):
        seed(_lead(), _sale())

        with pytest.raises(MissingCounterpartyAgentError) as exc_info:
            service.close(_sale(), _internal_close(closed_by_user_id=None))

        assert isinstance(exc_info.value, ValidationError)
        assert service.load_asset("sale-1").status is AssetStatus.ACTIVE

    def test_rental_requires_end_date(self, service, seed):
        seed(make_asset())
        with pytest.raises(InvalidPeriodError):
            service.close(make_asset(), CloseRequest(period_value=Decimal("2000")))

    def test_rental_end_must_follow_start(self, service, seed):
        seed(make_asset())
        request = CloseRequest(
            period_value=Decimal("2000"),
            period_start=date(2024, 3, 1),
            period_end_date=date(2024, 3, 1),
        )
        with pytest.raises(InvalidPeriodError) as exc_info:
            service.close(make_asset(), request)
        assert "end date must be after start date" in str(exc_info.value)

    def test_rental_uses_supplied_start(self, service, seed):
        seed(make_asset())
        request = CloseRequest(
            period_value=Decimal("2000"),
            commission_amount=Decimal("200"),
            period_start=date(2024, 2, 1),
            period_end_date=date(2025, 2, 1),
        )

        outcome = service.close(make_asset(), request)

        assert outcome.asset.closed_at == date(2024, 2, 1)
        assert outcome.asset.period_end_date == date(2025, 2, 1)

    def test_negative_amount_rejected(self, service, seed):
        seed(_lead(), _sale())
        with pytest.raises(InvalidAmountError):
            service.close(_sale(), _internal_close(commission_amount=Decimal("-1")))

    def test_closed_asset_cannot_close_again(self, service):
        with pytest.raises(InvalidTransitionError) as exc_info:
            service.close(_closed_rental(), _internal_close())
        assert exc_info.value.action == "close"

    def test_stale_splits_cleared(self, service, seed):
        stale = (CommissionSplit(BeneficiaryType.AGENCY, AGENCY_ID, "Acme", Decimal("100"), Decimal("1")),)
        asset = make_asset("sale-1", kind=AssetKind.SALE, commission_splits=stale)
        seed(_lead(), asset)

        outcome = service.close(asset, _internal_close())

        assert outcome.asset.commission_splits == ()
        assert service.load_asset("sale-1").commission_splits == ()

    def test_unknown_lead_fails_before_writing(self, service, seed):
        seed(_sale())

        with pytest.raises(RecordNotFoundError):
            service.close(_sale(), _internal_close())

        assert service.load_asset("sale-1").status is AssetStatus.ACTIVE

    def test_caller_asset_untouched(self, service, seed):
        asset = _sale()
        seed(_lead(), asset)
        service.close(asset, _internal_close())
        assert asset.status is AssetStatus.ACTIVE

    def test_emits_structured_events(self, service, seed, captured_logs):
        seed(_lead(), _sale())

        service.close(_sale(), _internal_close())

        closed = [r for r in captured_logs() if r["message"] == "asset_closed"]
        assert len(closed) == 1
        assert closed[0]["asset_id"] == "sale-1"
        assert closed[0]["agency_id"] == AGENCY_ID
        assert closed[0]["period_commission"] == "24000"
        assert any(r["message"] == "lead_status_updated" for r in captured_logs())


class TestCloseFailures:

    def test_asset_write_failure_writes_nothing(self, failing_service, failing_store):
        _seed(failing_store, _lead(), _sale())
        failing_store.fail_on = {("update", ASSETS)}

        with pytest.raises(PersistenceError) as exc_info:
            failing_service.close(_sale(), _internal_close())

        assert not isinstance(exc_info.value, PartiallyAppliedError)
        assert failing_service.load_lead(LEAD_ID).status is LeadStatus.NEGOTIATION

    def test_lead_write_failure_is_partially_applied(self, failing_service, failing_store):
        _seed(failing_store, _lead(), _sale())
        failing_store.fail_on = {("update", LEADS)}

        with pytest.raises(PartiallyAppliedError) as exc_info:
            failing_service.close(_sale(), _internal_close())

        error = exc_info.value
        assert error.failed_step == "lead_update"
        assert error.committed.status is AssetStatus.CLOSED
        assert isinstance(error.__cause__, PersistenceError)
        assert failing_service.load_asset("sale-1").status is AssetStatus.CLOSED
        assert failing_service.load_lead(LEAD_ID).status is LeadStatus.NEGOTIATION


# =============================================================================
# Reactivate
# =============================================================================


class TestReactivate:

    def test_clears_every_period_field(self, service, seed):
        seed(_lead(), _sale())
        closed = service.close(_sale(), _internal_close()).asset

        outcome = service.reactivate(closed)

        asset = outcome.asset
        assert asset.status is AssetStatus.ACTIVE
        assert asset.closed_at is None
        assert asset.counterparty_lead_id is None
        assert asset.closed_by_user_id is None
        assert asset.period_value == 0
        assert asset.period_commission == 0
        assert asset.period_end_date is None
        assert asset.commission_splits == ()

    def test_ledger_untouched_by_default(self, service, seed):
        seed(_closed_rental())
        outcome = service.reactivate(_closed_rental())
        assert outcome.ledger_entry is None
        assert service.all_ledger_entries() == ()

    def test_active_asset_rejected(self, service):
        with pytest.raises(InvalidTransitionError):
            service.reactivate(make_asset())

    def test_archives_started_rental_when_configured(self, memory_store, deterministic_clock):
        svc = TransactionService(
            memory_store,
            config=TransactionConfig(archive_on_reactivate=True),
            clock=deterministic_clock,
        )
        _seed(memory_store, _closed_rental())

        outcome = svc.reactivate(_closed_rental())

        entry = outcome.ledger_entry
        assert entry.period_start == date(2024, 1, 1)
        assert entry.period_end == date(2024, 1, 15)
        assert entry.value == Decimal("2000")
        assert svc.ledger_for(outcome.asset) == (entry,)

    def test_archive_skips_rental_not_started(self, memory_store, deterministic_clock):
        svc = TransactionService(
            memory_store,
            config=TransactionConfig(archive_on_reactivate=True),
            clock=deterministic_clock,
        )
        future = _closed_rental(closed_at=date(2024, 6, 1))
        _seed(memory_store, future)

        assert svc.reactivate(future).ledger_entry is None


# =============================================================================
# Renew / Readjust
# =============================================================================


class TestRenew:

    def test_appends_exactly_one_chained_entry(self, service, seed):
        seed(_closed_rental())

        outcome = service.renew(_closed_rental(), _renewal())

        entries = service.ledger_for(outcome.asset)
        assert len(entries) == 1
        assert entries[0].period_end == outcome.asset.closed_at == date(2025, 1, 1)
        assert entries[0].period_start == date(2024, 1, 1)
        assert entries[0].recorded_at == date(2024, 1, 15)
        assert outcome.asset.period_value == Decimal("2400")
        assert outcome.asset.period_end_date == date(2026, 1, 1)

    def test_sale_cannot_renew(self, service):
        sale = make_asset("sale-1", kind=AssetKind.SALE, status=AssetStatus.CLOSED, closed_at=date(2024, 1, 1))
        with pytest.raises(InvalidTransitionError) as exc_info:
            service.renew(sale, _renewal())
        assert "only rentals" in exc_info.value.reason

    def test_active_rental_cannot_renew(self, service):
        with pytest.raises(InvalidTransitionError):
            service.renew(make_asset(), _renewal())

    def test_period_order_validated_before_writing(self, service, seed):
        seed(_closed_rental())
        with pytest.raises(InvalidPeriodError):
            service.renew(_closed_rental(), _renewal(new_period_end=date(2024, 12, 31)))
        assert service.all_ledger_entries() == ()

    def test_renewing_pending_period_again_rejected(self, service, seed):
        seed(_closed_rental())
        first = service.renew(_closed_rental(), _renewal())

        with pytest.raises(InvalidPeriodError):
            service.renew(first.asset, _renewal(new_value=Decimal("2500")))

        assert service.ledger_for(first.asset) == (first.ledger_entry,)
        during_old = service.effective_financials(first.asset, date(2024, 6, 1))
        assert (during_old.value, during_old.commission) == (Decimal("2000"), Decimal("200"))

    def test_chain_after_two_renewals(self, service, seed):
        seed(_closed_rental())
        first = service.renew(_closed_rental(), _renewal())
        second = service.renew(
            first.asset,
            _renewal(
                new_value=Decimal("2600"),
                new_period_start=date(2026, 1, 1),
                new_period_end=date(2027, 1, 1),
            ),
        )

        history = service.period_history(second.asset)

        assert [e.period_end for e in history] == [date(2026, 1, 1), date(2025, 1, 1)]
        assert history[0].value == Decimal("2400")

    def test_asset_write_failure_leaves_orphan_entry(self, failing_service, failing_store):
        _seed(failing_store, _closed_rental())
        failing_store.fail_on = {("update", ASSETS)}

        with pytest.raises(PartiallyAppliedError) as exc_info:
            failing_service.renew(_closed_rental(), _renewal())

        error = exc_info.value
        assert error.failed_step == "asset_update"
        assert error.committed.period_end == date(2025, 1, 1)
        stored = failing_service.load_asset("asset-1")
        assert stored.closed_at == date(2024, 1, 1)
        # orphan is not chained: the asset never moved onto it
        assert failing_service.effective_financials(stored, date(2024, 6, 1)).ledger_entry_id is None

    def test_ledger_write_failure_writes_nothing(self, failing_service, failing_store):
        _seed(failing_store, _closed_rental())
        failing_store.fail_on = {("insert", LEDGER_ENTRIES)}

        with pytest.raises(PersistenceError) as exc_info:
            failing_service.renew(_closed_rental(), _renewal())

        assert not isinstance(exc_info.value, PartiallyAppliedError)
        assert failing_service.load_asset("asset-1").period_value == Decimal("2000")


class TestReadjust:

    def test_changes_amounts_and_keeps_end_date(self, service, seed):
        seed(_closed_rental())

        outcome = service.readjust(
            _closed_rental(),
            ReadjustmentRequest(Decimal("2200"), Decimal("220"), effective_date=date(2024, 7, 1)),
        )

        assert outcome.asset.period_value == Decimal("2200")
        assert outcome.asset.closed_at == date(2024, 7, 1)
        assert outcome.asset.period_end_date == date(2025, 1, 1)
        assert outcome.ledger_entry.period_end == date(2024, 7, 1)
        assert outcome.ledger_entry.value == Decimal("2000")

    def test_appends_audit_note(self, service, seed):
        seed(_closed_rental(notes="Pets allowed."))

        outcome = service.readjust(
            _closed_rental(notes="Pets allowed."),
            ReadjustmentRequest(Decimal("2200"), Decimal("220"), effective_date=date(2024, 7, 1)),
        )

        assert outcome.asset.notes == (
            "Pets allowed.\n[Readjustment on 01/07/2024]: rent from R$2000.00 to R$2200.00. "
            "Commission from R$200.00 to R$220.00."
        )

    def test_effective_date_must_precede_end(self, service, seed):
        seed(_closed_rental())
        with pytest.raises(InvalidPeriodError):
            service.readjust(
                _closed_rental(),
                ReadjustmentRequest(Decimal("2200"), Decimal("220"), effective_date=date(2025, 1, 1)),
            )

    def test_readjust_before_pending_renewal_rejected(self, service, seed):
        seed(_closed_rental())
        renewed = service.renew(_closed_rental(), _renewal()).asset

        with pytest.raises(InvalidPeriodError):
            service.readjust(
                renewed,
                ReadjustmentRequest(Decimal("2200"), Decimal("220"), effective_date=date(2024, 9, 1)),
            )

        assert len(service.ledger_for(renewed)) == 1
        assert service.load_asset("asset-1").closed_at == date(2025, 1, 1)
        assert service.effective_financials(renewed, date(2024, 6, 1)).value == Decimal("2000")

    def test_readjust_on_current_start_rejected(self, service, seed):
        seed(_closed_rental())
        with pytest.raises(InvalidPeriodError):
            service.readjust(
                _closed_rental(),
                ReadjustmentRequest(Decimal("2200"), Decimal("220"), effective_date=date(2024, 1, 1)),
            )
        assert service.all_ledger_entries() == ()

    def test_pending_readjustment_resolves_to_old_rent(self, service, seed):
        seed(_closed_rental())
        outcome = service.readjust(
            _closed_rental(),
            ReadjustmentRequest(Decimal("2200"), Decimal("220"), effective_date=date(2024, 7, 1)),
        )

        today = service.effective_financials(outcome.asset)

        assert today.value == Decimal("2000")
        assert today.ledger_entry_id == outcome.ledger_entry.id


# =============================================================================
# Display names
# =============================================================================


class TestDisplayNames:

    def test_external_label(self, service):
        assert service.counterparty_display_name(_closed_rental()) == "External client"

    def test_lead_name(self, service, seed):
        seed(_lead())
        asset = _closed_rental(counterparty_lead_id=LEAD_ID)
        assert service.counterparty_display_name(asset) == "Ana Souza"

    def test_missing_lead_degrades_with_warning(self, service, captured_logs):
        asset = _closed_rental(counterparty_lead_id="gone")

        assert service.counterparty_display_name(asset) == "External client"
        warnings = [r for r in captured_logs() if r["message"] == "counterparty_lookup_failed"]
        assert warnings[0]["level"] == "WARNING"
        assert warnings[0]["error_code"] == "RECORD_NOT_FOUND"

    def test_beneficiary_lookup(self, memory_store):
        names = {(BeneficiaryType.BROKER, "b1"): "Bruna Lima"}
        svc = TransactionService(memory_store, name_lookup=lambda t, i: names[(t, i)])

        assert svc.beneficiary(BeneficiaryType.BROKER, "b1").name == "Bruna Lima"
        assert svc.beneficiary_display_name(BeneficiaryType.BROKER, "nobody") == "Unknown"

    def test_beneficiary_without_lookup(self, service):
        assert service.beneficiary_display_name(BeneficiaryType.AGENCY, AGENCY_ID) == "Unknown"


# =============================================================================
# SQL store
# =============================================================================


class TestSqlBackedFlow:

    def test_close_renew_and_resolve(self, sql_service, sql_store):
        sql_store.insert(LEADS, lead_to_record(_lead()))
        sql_store.insert(ASSETS, asset_to_record(make_asset()))
        request = CloseRequest(
            period_value=Decimal("2000"),
            commission_amount=Decimal("200"),
            counterparty_lead_id=LEAD_ID,
            closed_by_user_id=AGENT_ID,
            period_start=date(2024, 1, 1),
            period_end_date=date(2025, 1, 1),
        )

        closed = sql_service.close(make_asset(), request).asset
        renewed = sql_service.renew(closed, _renewal()).asset

        assert sql_service.load_lead(LEAD_ID).status is LeadStatus.CLOSED
        effective = sql_service.effective_financials(renewed, date(2024, 6, 1))
        assert effective.value == Decimal("2000")
        assert effective.commission == Decimal("200")

    def test_ledger_rows_are_immutable(self, sql_service, sql_store):
        sql_store.insert(ASSETS, asset_to_record(_closed_rental()))
        entry = sql_service.renew(_closed_rental(), _renewal()).ledger_entry

        with pytest.raises(LedgerImmutabilityError):
            sql_store.update(LEDGER_ENTRIES, {"id": entry.id, "value": Decimal("0")})
        with pytest.raises(LedgerImmutabilityError):
            sql_store.delete(LEDGER_ENTRIES, entry.id)

    def test_splits_round_trip(self, sql_service, sql_store):
        asset = _closed_rental()
        sql_store.insert(ASSETS, asset_to_record(asset))
        splits = sql_service.open_distribution(
            asset,
            sql_service.beneficiary(BeneficiaryType.AGENCY, AGENCY_ID),
        )

        saved = sql_service.save_distribution(asset, splits)

        assert saved.commission_splits[0].percentage == Decimal("100.00")
        assert sql_service.load_asset(asset.id).commission_splits == saved.commission_splits
