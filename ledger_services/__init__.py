"""
ledger_services -- stateful services around the pure engines.

Project stores (in-memory and SQLAlchemy) and the workflow executor.
"""

from ledger_services.project_store import (
    InMemoryProjectStore,
    ProjectStore,
    SqlProjectStore,
)
from ledger_services.workflow_executor import (
    GuardExecutor,
    WorkflowExecutor,
    default_guard_executor,
)

__all__ = [
    "GuardExecutor",
    "InMemoryProjectStore",
    "ProjectStore",
    "SqlProjectStore",
    "WorkflowExecutor",
    "default_guard_executor",
]
