"""ORM models for the ledger kernel."""

from ledger_kernel.models.project_record import ProjectRecord

__all__ = ["ProjectRecord"]
