"""
Tests for project ledger persistence (ledger_services/project_store.py).

The same behaviour is exercised against the in-memory store and the
SQLAlchemy store on an in-memory SQLite database.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.db.engine import get_session_factory, session_scope
from ledger_kernel.domain.project import ProjectLedger
from ledger_kernel.domain.variation import VariationOrder
from ledger_kernel.exceptions import (
    OptimisticLockError,
    ProjectAlreadyExistsError,
    ProjectNotFoundError,
)
from ledger_services.project_store import InMemoryProjectStore, SqlProjectStore


@pytest.fixture(params=["memory", "sql"])
def empty_store(request):
    if request.param == "memory":
        return InMemoryProjectStore()
    return SqlProjectStore(request.getfixturevalue("db_session"))


def _vo(vo_id="vo-1", number="VO-1"):
    return VariationOrder(id=vo_id, vo_number=number, title="Extra drainage", reason="", date=date(2024, 3, 1))


class TestCreateAndLoad:

    def test_create_then_load(self, empty_store, register):
        created = empty_store.create("P-1", register)

        loaded = empty_store.load("P-1")

        assert created.revision == 0
        assert loaded == created
        assert loaded.register.get("boq-1").rate == Decimal("500")
        assert empty_store.exists("P-1")
        assert not empty_store.exists("P-2")

    def test_create_twice(self, empty_store, register):
        empty_store.create("P-1", register)

        with pytest.raises(ProjectAlreadyExistsError, match="P-1"):
            empty_store.create("P-1", register)

    def test_unknown_project(self, empty_store):
        with pytest.raises(ProjectNotFoundError) as exc_info:
            empty_store.load("missing")

        assert exc_info.value.code == "PROJECT_NOT_FOUND"


class TestSave:

    def test_save_bumps_revision(self, empty_store, register):
        ledger = empty_store.create("P-1", register)

        saved = empty_store.save(ledger.add_variation(_vo()))

        assert saved.revision == 1
        reloaded = empty_store.load("P-1")
        assert reloaded.revision == 1
        assert reloaded.vo_sequence == 1
        assert reloaded.get_variation("vo-1").title == "Extra drainage"

    def test_stale_writer_refused(self, empty_store, register):
        first = empty_store.create("P-1", register)
        second = empty_store.load("P-1")
        empty_store.save(first.add_variation(_vo()))

        with pytest.raises(OptimisticLockError) as exc_info:
            empty_store.save(second.add_variation(_vo("vo-2", "VO-1")))

        assert exc_info.value.code == "OPTIMISTIC_LOCK_CONFLICT"
        assert [v.id for v in empty_store.load("P-1").variation_orders] == ["vo-1"]

    def test_save_unknown_project(self, empty_store, register):
        ledger = empty_store.create("P-1", register)

        with pytest.raises(ProjectNotFoundError):
            empty_store.save(ProjectLedger(project_id="P-9", register=register))

    def test_conflict_logged(self, empty_store, register, captured_logs):
        ledger = empty_store.create("P-1", register)
        empty_store.save(ledger)

        with pytest.raises(OptimisticLockError):
            empty_store.save(ledger)

        conflicts = [r for r in captured_logs() if r["message"] == "project_save_conflict"]
        assert conflicts[0]["expected_revision"] == 0
        assert conflicts[0]["actual_revision"] == 1


class TestIsolation:

    def test_loaded_ledgers_are_independent(self, register):
        store = InMemoryProjectStore()
        store.create("P-1", register)

        a = store.load("P-1")
        b = store.load("P-1")

        assert a == b
        assert a is not b
        assert a.register is not b.register


class TestSqlUnitOfWork:

    def test_committed_scope_visible_to_next_session(self, sql_database, register):
        with session_scope() as session:
            store = SqlProjectStore(session)
            ledger = store.create("P-1", register)
            store.save(ledger.add_variation(_vo()))

        reader = get_session_factory()()
        try:
            loaded = SqlProjectStore(reader).load("P-1")
        finally:
            reader.close()

        assert loaded.revision == 1
        assert loaded.get_variation("vo-1").vo_number == "VO-1"

    def test_failed_scope_leaves_no_project(self, sql_database, register, captured_logs):
        with pytest.raises(RuntimeError, match="interrupted"):
            with session_scope() as session:
                SqlProjectStore(session).create("P-1", register)
                raise RuntimeError("interrupted")

        with session_scope() as session:
            assert not SqlProjectStore(session).exists("P-1")

        rollbacks = [r for r in captured_logs() if r["message"] == "unit_of_work_rolled_back"]
        assert rollbacks[0]["error"] == "RuntimeError"
