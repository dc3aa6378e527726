"""
Pytest fixtures for the contract ledger test suite.

Provides:
- Structured logging configured once per session, with a per-test capture
- A standard BOQ register and an in-memory project store seeded with it
- SQLite-in-memory sessions for the SQL project store
- Deterministic clock and sequential ids for reproducible documents
"""

import itertools
import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.domain.billing import MeasurementEntry, MeasurementSheet, WorkLogEntry
from ledger_kernel.domain.boq import BOQItem, BOQRegister
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_services.project_store import InMemoryProjectStore

PROJECT_ID = "P-100"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
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
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, billing_service):
            billing_service.save_ipc(...)
            logs = captured_logs()
            assert any(r["message"] == "ipc_saved" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    root.addHandler(handler)
    previous_level = root.level
    root.setLevel(logging.DEBUG)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def register() -> BOQRegister:
    """
    Three-line register: excavation and concrete are 50,000 each at full
    contract quantity; reinforcement is 100,000.
    """
    return BOQRegister((
        BOQItem(
            id="boq-1", item_no="1.1", description="Excavation in ordinary soil",
            unit="m3", contract_quantity=Decimal("100"), rate=Decimal("500"),
        ),
        BOQItem(
            id="boq-2", item_no="2.1", description="M20 concrete in foundations",
            unit="m3", contract_quantity=Decimal("200"), rate=Decimal("250"),
        ),
        BOQItem(
            id="boq-3", item_no="3.1", description="Reinforcement bar",
            unit="kg", contract_quantity=Decimal("1000"), rate=Decimal("100"),
        ),
    ))


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def id_factory():
    """Sequential ids: doc-1, doc-2, ..."""
    counter = itertools.count(1)
    return lambda: f"doc-{next(counter)}"


@pytest.fixture
def store(register) -> InMemoryProjectStore:
    store = InMemoryProjectStore()
    store.create(PROJECT_ID, register)
    return store


@pytest.fixture
def project_id() -> str:
    return PROJECT_ID


@pytest.fixture
def make_sheet():
    """
    Build a measurement sheet from (boq_item_id, quantity) pairs.

    Usage::

        sheet = make_sheet("ms-1", ("boq-1", "10"), ("boq-2", "4"))
    """
    def _make(sheet_id: str, *entries: tuple[str, str], status: str = "Approved") -> MeasurementSheet:
        return MeasurementSheet(
            id=sheet_id,
            status=status,
            entries=tuple(
                MeasurementEntry(boq_item_id=b, quantity=Decimal(q)) for b, q in entries
            ),
        )
    return _make


@pytest.fixture
def make_work_log():
    def _make(log_id: str, boq_item_id: str | None, subcontractor_id: str, quantity: str) -> WorkLogEntry:
        return WorkLogEntry(
            id=log_id,
            boq_item_id=boq_item_id,
            subcontractor_id=subcontractor_id,
            quantity=Decimal(quantity),
        )
    return _make


@pytest.fixture
def bill_date() -> date:
    return date(2024, 4, 30)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def sql_database() -> Generator[None, None, None]:
    """Fresh SQLite in-memory database behind the module-level engine."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield
    drop_tables()
    reset_engine()


@pytest.fixture
def db_session(sql_database) -> Generator[Session, None, None]:
    """Session against a fresh SQLite in-memory database."""
    session = get_session()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def variation_service(store, deterministic_clock, id_factory):
    from ledger_modules.variations.service import VariationService

    return VariationService(store, clock=deterministic_clock, id_factory=id_factory)


@pytest.fixture
def billing_service(store, id_factory):
    from ledger_modules.billing.config import BillingConfig
    from ledger_modules.billing.service import BillingService

    return BillingService(store, BillingConfig.with_defaults(), id_factory=id_factory)
