"""
Pytest fixtures for the realty ledger test suite.

Provides:
- Structured logging capture
- Deterministic clock
- In-memory record store and a service bound to it
- SQLAlchemy-backed record store (in-memory SQLite by default)

Environment Variables:
- DATABASE_URL: SQLAlchemy URL for the SQL store tests.  Defaults to an
  in-memory SQLite database; point it at PostgreSQL to run the same tests
  against a real server.
"""

import json
import logging
import os
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from realty_kernel.db.engine import drop_tables, init_engine_from_url, reset_engine
from realty_kernel.domain.clock import DeterministicClock
from realty_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from realty_modules._orm_registry import create_all_tables, create_record_store
from realty_modules.transactions.config import TransactionConfig
from realty_modules.transactions.models import (
    Asset,
    AssetKind,
    AssetStatus,
    Lead,
)
from realty_modules.transactions.records import (
    ASSETS,
    LEADS,
    asset_to_record,
    create_memory_store,
    lead_to_record,
)
from realty_modules.transactions.service import TransactionService

DEFAULT_DATABASE_URL = "sqlite://"

# Well-known ids used across the module tests
AGENCY_ID = "agency-1"
BROKER_ID = "broker-1"
AGENT_ID = "agent-1"
LEAD_ID = "lead-1"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture realty_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.close(...)
            logs = captured_logs()
            assert any(r["message"] == "asset_closed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("realty_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock / config
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Clock pinned to 2024-01-15."""
    clock = DeterministicClock()
    clock.set_date(date(2024, 1, 15))
    return clock


@pytest.fixture
def config():
    return TransactionConfig.with_defaults()


# =============================================================================
# Stores and services
# =============================================================================


@pytest.fixture
def memory_store():
    return create_memory_store()


@pytest.fixture
def service(memory_store, config, deterministic_clock):
    return TransactionService(memory_store, config=config, clock=deterministic_clock)


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


@pytest.fixture
def sql_store():
    """``SqlAlchemyRecordStore`` over a fresh schema."""
    init_engine_from_url(get_database_url())
    create_all_tables()
    yield create_record_store()
    drop_tables()
    reset_engine()


@pytest.fixture
def sql_service(sql_store, config, deterministic_clock):
    return TransactionService(sql_store, config=config, clock=deterministic_clock)


# =============================================================================
# Entity factories
# =============================================================================


def make_asset(
    asset_id: str = "asset-1",
    kind: AssetKind = AssetKind.RENTAL_ANNUAL,
    list_price: Decimal = Decimal("2000"),
    **overrides,
) -> Asset:
    """Active asset owned by the test agency, listed by the test broker."""
    fields = {
        "id": asset_id,
        "kind": kind,
        "list_price": list_price,
        "status": AssetStatus.ACTIVE,
        "agency_id": AGENCY_ID,
        "broker_id": BROKER_ID,
        "title": f"Listing {asset_id}",
    }
    fields.update(overrides)
    return Asset(**fields)


@pytest.fixture
def seed(memory_store):
    """Insert assets and leads into the in-memory store; returns the inserter."""

    def _seed(*entities):
        for entity in entities:
            if isinstance(entity, Lead):
                memory_store.insert(LEADS, lead_to_record(entity))
            else:
                memory_store.insert(ASSETS, asset_to_record(entity))
        return entities

    return _seed
