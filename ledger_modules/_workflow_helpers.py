"""
Shared helpers for module lifecycle flows.

Used by ledger_modules/*/service.py to turn workflow executor results into
typed errors, so every document lifecycle fails the same way.

Architecture: Modules layer. Imports only from ledger_kernel and the
workflow executor.
"""

from __future__ import annotations

from typing import Any

from ledger_kernel.domain.workflow import Workflow
from ledger_kernel.exceptions import InvalidTransitionError, ValidationError
from ledger_services.workflow_executor import WorkflowExecutor


def run_transition(
    executor: WorkflowExecutor,
    workflow: Workflow,
    entity_type: str,
    entity_id: str,
    *,
    current_state: str,
    action: str,
    actor_id: str | None = None,
    actor_role: str | None = None,
    context: Any = None,
) -> str:
    """
    Execute one transition and return the new state.

    Raises:
        InvalidTransitionError: No transition for ``action`` from ``current_state``.
        ValidationError: The transition's guard did not pass.
        UnauthorizedApproverError: ``actor_role`` may not perform ``action``.
    """
    result = executor.execute_transition(
        workflow=workflow,
        entity_type=entity_type,
        entity_id=entity_id,
        current_state=current_state,
        action=action,
        actor_id=actor_id,
        actor_role=actor_role,
        context=context,
    )
    if result.success:
        return result.new_state
    if result.failed_guard is not None:
        raise ValidationError(result.failed_guard.name, result.failed_guard.description)
    raise InvalidTransitionError(workflow.name, entity_id, current_state, action)
