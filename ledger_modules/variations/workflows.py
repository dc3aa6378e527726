"""Variation Order Workflows.

Variation order lifecycle:

    Draft --submit--> Submitted --approve--> Approved (terminal)
                          |
                          +--reject--> Rejected --revise_draft--> Draft

Approval is the only transition that changes the BOQ register.  Approve
and reject are restricted to the configured approver roles.
"""

from ledger_kernel.domain.variation import VariationStatus
from ledger_kernel.domain.workflow import Guard, Transition, Workflow
from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.variations.workflows")

DEFAULT_APPROVER_ROLES = ("admin", "project_manager")

READY_TO_SUBMIT = Guard(
    name="has_items_and_title",
    description="A variation order needs a title and at least one item",
)


def build_variation_workflow(approver_roles: tuple[str, ...] = DEFAULT_APPROVER_ROLES) -> Workflow:
    """Variation order lifecycle with approve/reject limited to ``approver_roles``."""
    draft = VariationStatus.DRAFT.value
    submitted = VariationStatus.SUBMITTED.value
    approved = VariationStatus.APPROVED.value
    rejected = VariationStatus.REJECTED.value
    return Workflow(
        name="variation_order",
        description="Variation order lifecycle",
        initial_state=draft,
        states=(draft, submitted, approved, rejected),
        transitions=(
            Transition(draft, submitted, action="submit", guard=READY_TO_SUBMIT),
            Transition(
                submitted, approved, action="approve",
                mutates_register=True, allowed_roles=tuple(approver_roles),
            ),
            Transition(submitted, rejected, action="reject", allowed_roles=tuple(approver_roles)),
            Transition(rejected, draft, action="revise_draft"),
        ),
        terminal_states=(approved,),
    )


VARIATION_ORDER_WORKFLOW = build_variation_workflow()

logger.info(
    "variation_workflow_defined",
    extra={
        "states": list(VARIATION_ORDER_WORKFLOW.states),
        "transition_count": len(VARIATION_ORDER_WORKFLOW.transitions),
    },
)
