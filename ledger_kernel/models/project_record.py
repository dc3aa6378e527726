"""
Module: ledger_kernel.models.project_record
Responsibility: ORM persistence for one project's ledger document.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - project_id is unique (uq_project_record_project_id).
    - revision increases by exactly one on every successful save; the project
      store refuses a save whose expected revision does not match.

Failure modes:
    - IntegrityError on a duplicate project_id insert.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base


class ProjectRecord(Base):
    """
    Stored ledger document for one project.

    The whole aggregate lives in ``payload`` (camelCase JSON produced by
    ``ledger_kernel.domain.codec``); ``revision`` guards concurrent writers.
    """

    __tablename__ = "project_ledgers"

    __table_args__ = (
        UniqueConstraint("project_id", name="uq_project_record_project_id"),
    )

    project_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    revision: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ProjectRecord {self.project_id} r{self.revision}>"
