"""
Tests for the workflow executor (ledger_services/workflow_executor.py).
"""

import pytest

from ledger_kernel.domain.workflow import Guard, Transition, Workflow
from ledger_kernel.exceptions import UnauthorizedApproverError
from ledger_services.workflow_executor import (
    GuardExecutor,
    WorkflowExecutor,
    normalize_role,
)

HAS_ITEMS = Guard("has_items", "At least one item")

DOC_WORKFLOW = Workflow(
    name="doc",
    description="Test document lifecycle",
    initial_state="Draft",
    states=("Draft", "Submitted", "Approved"),
    transitions=(
        Transition("Draft", "Submitted", action="submit", guard=HAS_ITEMS),
        Transition(
            "Submitted", "Approved", action="approve",
            mutates_register=True, allowed_roles=("admin", "project_manager"),
        ),
    ),
    terminal_states=("Approved",),
)


@pytest.fixture
def executor():
    return WorkflowExecutor()


class TestWorkflowDefinition:

    def test_undeclared_state_rejected(self):
        with pytest.raises(ValueError, match="undeclared state"):
            Workflow(
                name="bad", description="", initial_state="A", states=("A",),
                transitions=(Transition("A", "B", action="go"),),
            )

    def test_terminal_state_cannot_have_exits(self):
        with pytest.raises(ValueError, match="terminal state"):
            Workflow(
                name="bad", description="", initial_state="A", states=("A", "B"),
                transitions=(Transition("B", "A", action="back"),),
                terminal_states=("B",),
            )

    def test_actions_from(self):
        assert DOC_WORKFLOW.actions_from("Draft") == ("submit",)
        assert DOC_WORKFLOW.actions_from("Approved") == ()


class TestExecuteTransition:

    def test_guarded_transition(self, executor):
        result = executor.execute_transition(
            DOC_WORKFLOW, "doc", "d-1", "Draft", "submit", context={"items": [1]},
        )

        assert result.success
        assert result.new_state == "Submitted"
        assert not result.mutates_register

    def test_guard_failure_reports_guard(self, executor):
        result = executor.execute_transition(
            DOC_WORKFLOW, "doc", "d-1", "Draft", "submit", context={"items": []},
        )

        assert not result.success
        assert result.failed_guard == HAS_ITEMS

    def test_no_transition(self, executor):
        result = executor.execute_transition(DOC_WORKFLOW, "doc", "d-1", "Draft", "approve")

        assert not result.success
        assert result.failed_guard is None
        assert "No transition" in result.reason

    def test_role_enforced(self, executor):
        with pytest.raises(UnauthorizedApproverError):
            executor.execute_transition(
                DOC_WORKFLOW, "doc", "d-1", "Submitted", "approve", actor_role="site_engineer",
            )

    def test_role_normalized(self, executor):
        result = executor.execute_transition(
            DOC_WORKFLOW, "doc", "d-1", "Submitted", "approve", actor_role="Project Manager",
        )

        assert result.success
        assert result.mutates_register

    def test_unregistered_guard_fails_closed(self):
        executor = WorkflowExecutor(GuardExecutor())

        result = executor.execute_transition(
            DOC_WORKFLOW, "doc", "d-1", "Draft", "submit", context={"items": [1]},
        )

        assert not result.success

    def test_trace_emitted(self, executor, captured_logs):
        sink = []

        executor.execute_transition(
            DOC_WORKFLOW, "doc", "d-1", "Draft", "submit",
            actor_id="u-1", context={"items": [1]}, outcome_sink=sink.append,
        )

        traces = [r for r in captured_logs() if r["message"] == "workflow_transition"]
        assert traces[0]["outcome"] == "success"
        assert traces[0]["to_state"] == "Submitted"
        assert sink[0]["entity_id"] == "d-1"


@pytest.mark.parametrize("raw", ["PROJECT_MANAGER", "Project Manager", "project-manager"])
def test_normalize_role(raw):
    assert normalize_role(raw) == "project_manager"
