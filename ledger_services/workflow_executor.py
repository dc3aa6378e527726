"""
ledger_services.workflow_executor -- Workflow transition execution.

Responsibility:
    Executes document state transitions (variation orders, IPCs,
    subcontractor bills) with role and guard enforcement, and emits one
    structured ``workflow_transition`` record per attempt.

Architecture position:
    Services layer.  May import from ledger_kernel (domain, exceptions,
    logging).  Workflows themselves are declared by the modules.

Invariants enforced:
    - A transition fires only from its declared ``from_state``.
    - Role-restricted transitions refuse actors outside ``allowed_roles``
      (``UnauthorizedApproverError``) before any guard is evaluated.
    - Guards with no registered evaluator fail closed.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from ledger_kernel.domain.workflow import Guard, TransitionResult, Workflow
from ledger_kernel.exceptions import UnauthorizedApproverError
from ledger_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.workflow_executor")

TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_GUARD_FAILED = "guard_failed"
OUTCOME_NO_TRANSITION = "no_transition"
OUTCOME_UNAUTHORIZED = "unauthorized"


def normalize_role(role: str | None) -> str:
    """``"PROJECT_MANAGER"``, ``"Project Manager"`` and ``"project_manager"`` compare equal."""
    if not role:
        return ""
    return role.strip().lower().replace(" ", "_").replace("-", "_")


def _emit_workflow_trace(
    workflow_name: str,
    action: str,
    entity_type: str,
    entity_id: str,
    from_state: str,
    outcome: str,
    reason: str,
    duration_ms: float,
    to_state: str | None = None,
    actor_id: str | None = None,
    outcome_sink: Callable[[dict], None] | None = None,
) -> None:
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "workflow": workflow_name,
        "action": action,
        "entity_type": entity_type,
        "entity_id": str(entity_id),
        "from_state": from_state,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
    }
    if to_state is not None:
        record["to_state"] = to_state
    if actor_id is not None:
        record["actor_id"] = actor_id
    record.update(LogContext.get_all())
    if outcome == OUTCOME_SUCCESS:
        logger.info("workflow_transition", extra=record)
    else:
        logger.warning("workflow_transition", extra=record)
    if outcome_sink is not None:
        outcome_sink(dict(record, message="workflow_transition"))


# ---------------------------------------------------------------------------
# Guard evaluation
# ---------------------------------------------------------------------------


def _get_attr(context: Any, key: str, default: Any = None) -> Any:
    """Get attribute from context (object or dict)."""
    if context is None:
        return default
    if isinstance(context, dict):
        return context.get(key, default)
    return getattr(context, key, default)


def _has_items(context: Any) -> bool:
    return len(_get_attr(context, "items", ()) or ()) > 0


def _has_title(context: Any) -> bool:
    title = _get_attr(context, "title", "")
    return bool(title and title.strip())


class GuardExecutor:
    """Evaluates workflow guards against context.

    Guards are declared on transitions (name + description); this executor
    holds the evaluation logic per guard name.
    """

    def __init__(self) -> None:
        self._evaluators: dict[str, Callable[[Any], bool]] = {}

    def register(self, guard_name: str, evaluator: Callable[[Any], bool]) -> None:
        self._evaluators[guard_name] = evaluator

    def evaluate(self, guard: Guard, context: Any = None) -> bool:
        """Evaluate a guard against context. Returns True if guard passes."""
        fn = self._evaluators.get(guard.name)
        if fn is None:
            logger.warning("guard_no_evaluator", extra={"guard_name": guard.name})
            return False
        return bool(fn(context))


def default_guard_executor() -> GuardExecutor:
    """GuardExecutor with the built-in document guards registered."""
    ex = GuardExecutor()
    ex.register("has_items", _has_items)
    ex.register("has_title", _has_title)
    ex.register("has_items_and_title", lambda ctx: _has_items(ctx) and _has_title(ctx))
    return ex


# ---------------------------------------------------------------------------
# WorkflowExecutor
# ---------------------------------------------------------------------------


class WorkflowExecutor:
    """Executes workflow transitions with role and guard enforcement."""

    def __init__(self, guard_executor: GuardExecutor | None = None) -> None:
        self._guard_executor = guard_executor or default_guard_executor()

    def execute_transition(
        self,
        workflow: Workflow,
        entity_type: str,
        entity_id: str,
        current_state: str,
        action: str,
        actor_id: str | None = None,
        actor_role: str | None = None,
        context: Any = None,
        outcome_sink: Callable[[dict], None] | None = None,
    ) -> TransitionResult:
        """
        Attempt ``action`` from ``current_state``.

        Returns a failed ``TransitionResult`` when no transition matches or
        a guard does not pass; the caller decides which error to raise.

        Raises:
            UnauthorizedApproverError: The transition is role-restricted and
                ``actor_role`` is not one of its ``allowed_roles``.
        """
        t0 = time.monotonic()

        def trace(outcome: str, reason: str, to_state: str | None = None) -> None:
            _emit_workflow_trace(
                workflow_name=workflow.name,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                from_state=current_state,
                to_state=to_state,
                outcome=outcome,
                reason=reason,
                duration_ms=(time.monotonic() - t0) * 1000,
                actor_id=actor_id,
                outcome_sink=outcome_sink,
            )

        transition = workflow.find_transition(current_state, action)
        if transition is None:
            reason = (
                f"No transition from '{current_state}' via action '{action}' "
                f"in workflow '{workflow.name}'"
            )
            trace(OUTCOME_NO_TRANSITION, reason)
            return TransitionResult(success=False, reason=reason)

        if transition.allowed_roles:
            allowed = {normalize_role(r) for r in transition.allowed_roles}
            if normalize_role(actor_role) not in allowed:
                trace(OUTCOME_UNAUTHORIZED, f"Role '{actor_role}' may not {action}")
                raise UnauthorizedApproverError(actor_role or "", tuple(transition.allowed_roles))

        if transition.guard is not None and not self._guard_executor.evaluate(
            transition.guard, context
        ):
            reason = f"Guard not satisfied: {transition.guard.name}"
            trace(OUTCOME_GUARD_FAILED, reason)
            return TransitionResult(success=False, reason=reason, failed_guard=transition.guard)

        trace(OUTCOME_SUCCESS, "transition allowed", to_state=transition.to_state)
        return TransitionResult(
            success=True,
            new_state=transition.to_state,
            mutates_register=transition.mutates_register,
            reason="transition allowed",
        )
