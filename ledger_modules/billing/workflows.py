"""Billing Workflows.

IPC lifecycle:

    Draft --issue--> Issued (terminal)

Subcontractor bill lifecycle:

    Draft --submit--> Submitted --approve--> Approved --mark_paid--> Paid (terminal)

Saved bills never change their figures; only the status moves.
"""

from ledger_kernel.domain.billing import IPCStatus, SubcontractorBillStatus
from ledger_kernel.domain.workflow import Guard, Transition, Workflow
from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.billing.workflows")

HAS_ITEMS = Guard(
    name="has_items",
    description="A bill needs at least one item",
)

IPC_WORKFLOW = Workflow(
    name="interim_payment_certificate",
    description="Interim payment certificate lifecycle",
    initial_state=IPCStatus.DRAFT.value,
    states=(IPCStatus.DRAFT.value, IPCStatus.ISSUED.value),
    transitions=(
        Transition(IPCStatus.DRAFT.value, IPCStatus.ISSUED.value, action="issue", guard=HAS_ITEMS),
    ),
    terminal_states=(IPCStatus.ISSUED.value,),
)

SUBCONTRACTOR_BILL_WORKFLOW = Workflow(
    name="subcontractor_bill",
    description="Subcontractor bill lifecycle",
    initial_state=SubcontractorBillStatus.DRAFT.value,
    states=tuple(s.value for s in SubcontractorBillStatus),
    transitions=(
        Transition(
            SubcontractorBillStatus.DRAFT.value,
            SubcontractorBillStatus.SUBMITTED.value,
            action="submit",
            guard=HAS_ITEMS,
        ),
        Transition(
            SubcontractorBillStatus.SUBMITTED.value,
            SubcontractorBillStatus.APPROVED.value,
            action="approve",
        ),
        Transition(
            SubcontractorBillStatus.APPROVED.value,
            SubcontractorBillStatus.PAID.value,
            action="mark_paid",
        ),
    ),
    terminal_states=(SubcontractorBillStatus.PAID.value,),
)

logger.info(
    "billing_workflows_defined",
    extra={
        "workflows": [IPC_WORKFLOW.name, SUBCONTRACTOR_BILL_WORKFLOW.name],
    },
)
