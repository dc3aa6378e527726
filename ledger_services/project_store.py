"""
ledger_services.project_store -- Whole-object persistence of project ledgers.

Responsibility:
    Loads and saves ``ProjectLedger`` aggregates as whole-object
    replacements, enforcing optimistic concurrency through the aggregate's
    ``revision``.

Architecture position:
    Services layer.  Two implementations of one protocol:
    ``InMemoryProjectStore`` (dict of payloads) and ``SqlProjectStore``
    (one ``ProjectRecord`` row per project).  Both store the codec's
    camelCase payload, never live domain objects, so a caller holding an
    aggregate can never reach into the store.

Invariants enforced:
    - ``save`` succeeds only when the stored revision equals the
      aggregate's revision; the stored revision then increases by one.
    - ``SqlProjectStore`` flushes but never commits; the caller owns the
      transaction.

Failure modes:
    - ProjectNotFoundError on load/save of an unknown project.
    - ProjectAlreadyExistsError on create of an existing project.
    - OptimisticLockError when another writer saved first.
"""

from __future__ import annotations

import copy
from dataclasses import replace
from typing import Any, Protocol

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ledger_kernel.domain.boq import BOQRegister
from ledger_kernel.domain.codec import ledger_from_dict, ledger_to_dict
from ledger_kernel.domain.project import ProjectLedger
from ledger_kernel.exceptions import (
    OptimisticLockError,
    ProjectAlreadyExistsError,
    ProjectNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.project_record import ProjectRecord

logger = get_logger("services.project_store")


class ProjectStore(Protocol):
    """Opaque key-value store of project ledgers."""

    def create(self, project_id: str, register: BOQRegister) -> ProjectLedger: ...

    def load(self, project_id: str) -> ProjectLedger: ...

    def save(self, ledger: ProjectLedger) -> ProjectLedger: ...

    def exists(self, project_id: str) -> bool: ...


class InMemoryProjectStore:
    """Process-local store; payloads are deep-copied in and out."""

    def __init__(self) -> None:
        self._rows: dict[str, tuple[int, dict[str, Any]]] = {}

    def exists(self, project_id: str) -> bool:
        return project_id in self._rows

    def create(self, project_id: str, register: BOQRegister) -> ProjectLedger:
        if project_id in self._rows:
            raise ProjectAlreadyExistsError(project_id)
        ledger = ProjectLedger(project_id=project_id, register=register)
        self._rows[project_id] = (0, ledger_to_dict(ledger))
        logger.info("project_created", extra={
            "project_id": project_id,
            "boq_item_count": len(register),
        })
        return ledger

    def load(self, project_id: str) -> ProjectLedger:
        if project_id not in self._rows:
            raise ProjectNotFoundError(project_id)
        revision, payload = self._rows[project_id]
        return ledger_from_dict(copy.deepcopy(payload), revision=revision)

    def save(self, ledger: ProjectLedger) -> ProjectLedger:
        if ledger.project_id not in self._rows:
            raise ProjectNotFoundError(ledger.project_id)
        stored_revision, _ = self._rows[ledger.project_id]
        if stored_revision != ledger.revision:
            logger.warning("project_save_conflict", extra={
                "project_id": ledger.project_id,
                "expected_revision": ledger.revision,
                "actual_revision": stored_revision,
            })
            raise OptimisticLockError(
                "ProjectLedger", ledger.project_id, ledger.revision, stored_revision
            )
        new_revision = stored_revision + 1
        self._rows[ledger.project_id] = (new_revision, ledger_to_dict(ledger))
        logger.debug("project_saved", extra={
            "project_id": ledger.project_id,
            "revision": new_revision,
        })
        return replace(ledger, revision=new_revision)


class SqlProjectStore:
    """
    SQLAlchemy-backed store: one ``ProjectRecord`` row per project.

    The revision check is a conditional UPDATE (``WHERE revision = :expected``)
    so two sessions racing on the same project cannot both succeed.
    """

    def __init__(self, session: Session):
        self.session = session

    def _record(self, project_id: str) -> ProjectRecord | None:
        stmt = (
            select(ProjectRecord)
            .where(ProjectRecord.project_id == project_id)
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def exists(self, project_id: str) -> bool:
        return self._record(project_id) is not None

    def create(self, project_id: str, register: BOQRegister) -> ProjectLedger:
        if self._record(project_id) is not None:
            raise ProjectAlreadyExistsError(project_id)
        ledger = ProjectLedger(project_id=project_id, register=register)
        self.session.add(ProjectRecord(
            project_id=project_id,
            revision=0,
            payload=ledger_to_dict(ledger),
        ))
        self.session.flush()
        logger.info("project_created", extra={
            "project_id": project_id,
            "boq_item_count": len(register),
        })
        return ledger

    def load(self, project_id: str) -> ProjectLedger:
        record = self._record(project_id)
        if record is None:
            raise ProjectNotFoundError(project_id)
        return ledger_from_dict(record.payload, revision=record.revision)

    def save(self, ledger: ProjectLedger) -> ProjectLedger:
        new_revision = ledger.revision + 1
        stmt = (
            update(ProjectRecord)
            .where(
                ProjectRecord.project_id == ledger.project_id,
                ProjectRecord.revision == ledger.revision,
            )
            .values(revision=new_revision, payload=ledger_to_dict(ledger))
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount != 1:
            record = self._record(ledger.project_id)
            if record is None:
                raise ProjectNotFoundError(ledger.project_id)
            logger.warning("project_save_conflict", extra={
                "project_id": ledger.project_id,
                "expected_revision": ledger.revision,
                "actual_revision": record.revision,
            })
            raise OptimisticLockError(
                "ProjectLedger", ledger.project_id, ledger.revision, record.revision
            )
        self.session.flush()
        logger.debug("project_saved", extra={
            "project_id": ledger.project_id,
            "revision": new_revision,
        })
        return replace(ledger, revision=new_revision)
