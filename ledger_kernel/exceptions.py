"""
Typed Exception Hierarchy for the Contract Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (the project application, API handlers, tests) must be
able to tell a missing title from a stale IPC from a lost optimistic lock
without parsing message strings. Every error therefore:

  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

Example:
    try:
        service.approve(project_id, vo_id, actor_role="project_manager")
    except UnknownBoqItemError as e:
        api_response(code=e.code, boq_item_id=e.boq_item_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- ValidationError
    |
    +-- ReferenceNotFoundError
    |   +-- UnknownBoqItemError
    |   +-- VariationNotFoundError
    |   +-- VariationItemNotFoundError
    |   +-- BillNotFoundError
    |   +-- ProjectNotFoundError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   +-- VariationNotDraftError
    |   +-- UnauthorizedApproverError
    |
    +-- BillingPolicyError
    |   +-- ProvisionalSumExceedsGrossError
    |   +-- NegativeCertificateError
    |   +-- StalePreviousQuantityError
    |   +-- DuplicateMeasurementError
    |   +-- QuantityRegressionError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |   +-- ProjectAlreadyExistsError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|-----------------------------------
Validation   | VALIDATION_ERROR              | Precondition violated by the caller
-------------|-------------------------------|-----------------------------------
Reference    | UNKNOWN_BOQ_ITEM              | boq_item_id not in the register
             | VARIATION_NOT_FOUND           | VO id not in the project
             | VARIATION_ITEM_NOT_FOUND      | Item id not staged on the VO
             | BILL_NOT_FOUND                | Bill id not in the project
             | PROJECT_NOT_FOUND             | Project id unknown to the store
-------------|-------------------------------|-----------------------------------
Workflow     | INVALID_TRANSITION            | No transition for (state, action)
             | VARIATION_NOT_DRAFT           | Edit/delete of a non-draft VO
             | UNAUTHORIZED_APPROVER         | Actor role may not approve
-------------|-------------------------------|-----------------------------------
Billing      | PROVISIONAL_SUM_EXCEEDS_GROSS | Bill amount without PS < 0
             | NEGATIVE_CERTIFICATE          | Total payable < 0
             | STALE_PREVIOUS_QUANTITY       | Draft built on a superseded IPC
             | DUPLICATE_MEASUREMENT         | Source already billed
             | QUANTITY_REGRESSION           | Upto-date quantity decreased
-------------|-------------------------------|-----------------------------------
Immutability | IMMUTABILITY_VIOLATION        | Saved bill no longer reproduces
-------------|-------------------------------|-----------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT      | Project revision moved underneath
             | PROJECT_ALREADY_EXISTS        | create() on an existing project id
-------------|-------------------------------|-----------------------------------
Config       | CONFIGURATION_ERROR           | Invalid configuration values

===============================================================================
"""

from decimal import Decimal


class LedgerKernelError(Exception):
    """
    Base exception for all contract ledger errors.

    All subclasses must have a `code` class attribute for
    machine-readable error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Validation


class ValidationError(LedgerKernelError):
    """A precondition of an engine or service operation was violated."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Reference-related exceptions


class ReferenceNotFoundError(LedgerKernelError):
    """Base exception for dangling references."""

    code: str = "REFERENCE_NOT_FOUND"


class UnknownBoqItemError(ReferenceNotFoundError):
    """
    A bill or variation item references a BOQ item that is not in the register.

    Raised before any mutation is applied; the operation is aborted whole.
    """

    code: str = "UNKNOWN_BOQ_ITEM"

    def __init__(self, boq_item_id: str, context: str = ""):
        self.boq_item_id = boq_item_id
        self.context = context
        suffix = f" ({context})" if context else ""
        super().__init__(f"Unknown BOQ item: {boq_item_id}{suffix}")


class VariationNotFoundError(ReferenceNotFoundError):
    """Variation order with given ID was not found."""

    code: str = "VARIATION_NOT_FOUND"

    def __init__(self, variation_id: str):
        self.variation_id = variation_id
        super().__init__(f"Variation order not found: {variation_id}")


class VariationItemNotFoundError(ReferenceNotFoundError):
    """Variation item with given ID is not staged on the order."""

    code: str = "VARIATION_ITEM_NOT_FOUND"

    def __init__(self, variation_id: str, item_id: str):
        self.variation_id = variation_id
        self.item_id = item_id
        super().__init__(
            f"Variation item {item_id} not found on variation order {variation_id}"
        )


class BillNotFoundError(ReferenceNotFoundError):
    """Contract or subcontractor bill with given ID was not found."""

    code: str = "BILL_NOT_FOUND"

    def __init__(self, bill_id: str):
        self.bill_id = bill_id
        super().__init__(f"Bill not found: {bill_id}")


class ProjectNotFoundError(ReferenceNotFoundError):
    """Project with given ID is unknown to the project store."""

    code: str = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


# Workflow-related exceptions


class WorkflowError(LedgerKernelError):
    """Base exception for lifecycle errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """No transition exists for the requested action from the current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, workflow: str, entity_id: str, current_state: str, action: str):
        self.workflow = workflow
        self.entity_id = entity_id
        self.current_state = current_state
        self.action = action
        super().__init__(
            f"Cannot '{action}' {workflow} {entity_id} from state '{current_state}'"
        )


class VariationNotDraftError(WorkflowError):
    """
    The variation order is not a draft.

    Items can only be staged or removed, and orders only deleted,
    while the order is in Draft.
    """

    code: str = "VARIATION_NOT_DRAFT"

    def __init__(self, variation_id: str, status: str, operation: str):
        self.variation_id = variation_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} variation order {variation_id}: status is {status}"
        )


class UnauthorizedApproverError(WorkflowError):
    """The actor's role is not permitted to perform an approval."""

    code: str = "UNAUTHORIZED_APPROVER"

    def __init__(self, actor_role: str, required_roles: tuple[str, ...]):
        self.actor_role = actor_role
        self.required_roles = required_roles
        super().__init__(
            f"Role '{actor_role}' may not approve; required one of {list(required_roles)}"
        )


# Billing policy exceptions


class BillingPolicyError(LedgerKernelError):
    """Base exception for certificates that violate billing policy."""

    code: str = "BILLING_POLICY_ERROR"


class ProvisionalSumExceedsGrossError(BillingPolicyError):
    """The provisional sum exceeds gross plus CPA (bill amount without PS < 0)."""

    code: str = "PROVISIONAL_SUM_EXCEEDS_GROSS"

    def __init__(self, bill_amount_with_cpa: Decimal, provisional_sum: Decimal):
        self.bill_amount_with_cpa = str(bill_amount_with_cpa)
        self.provisional_sum = str(provisional_sum)
        super().__init__(
            f"Provisional sum {provisional_sum} exceeds bill amount with CPA "
            f"{bill_amount_with_cpa}"
        )


class NegativeCertificateError(BillingPolicyError):
    """The certificate would certify a negative payable amount."""

    code: str = "NEGATIVE_CERTIFICATE"

    def __init__(self, total_amount_payable: Decimal):
        self.total_amount_payable = str(total_amount_payable)
        super().__init__(
            f"Total amount payable is negative: {total_amount_payable}"
        )


class StalePreviousQuantityError(BillingPolicyError):
    """
    The draft's previous quantities do not match the latest saved bill.

    Happens when another bill was saved after the draft was generated.
    """

    code: str = "STALE_PREVIOUS_QUANTITY"

    def __init__(self, boq_item_id: str, expected: Decimal, actual: Decimal):
        self.boq_item_id = boq_item_id
        self.expected = str(expected)
        self.actual = str(actual)
        super().__init__(
            f"Stale previous quantity for BOQ item {boq_item_id}: "
            f"draft has {actual}, latest bill has {expected}"
        )


class DuplicateMeasurementError(BillingPolicyError):
    """
    A measurement sheet or work log has already been billed.

    ``bill_number`` is None when the source was selected twice for the
    same bill.
    """

    code: str = "DUPLICATE_MEASUREMENT"

    def __init__(self, source_id: str, bill_number: str | None = None):
        self.source_id = source_id
        self.bill_number = bill_number
        if bill_number is None:
            message = f"Source {source_id} was selected more than once for the same bill"
        else:
            message = f"Source {source_id} was already billed on {bill_number}"
        super().__init__(message)


class QuantityRegressionError(BillingPolicyError):
    """A cumulative quantity would decrease."""

    code: str = "QUANTITY_REGRESSION"

    def __init__(self, boq_item_id: str, previous: Decimal, new: Decimal):
        self.boq_item_id = boq_item_id
        self.previous = str(previous)
        self.new = str(new)
        super().__init__(
            f"Cumulative quantity for BOQ item {boq_item_id} would decrease "
            f"from {previous} to {new}"
        )


# Immutability-related exceptions


class ImmutabilityError(LedgerKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """A saved record was modified or no longer reproduces its frozen values."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Concurrency-related exceptions


class ConcurrencyError(LedgerKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, expected_revision: int, actual_revision: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_revision = expected_revision
        self.actual_revision = actual_revision
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            f"expected revision {expected_revision}, found {actual_revision}"
        )


class ProjectAlreadyExistsError(ConcurrencyError):
    """A project with this ID already exists in the store."""

    code: str = "PROJECT_ALREADY_EXISTS"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project already exists: {project_id}")


# Configuration


class ConfigurationError(LedgerKernelError):
    """Configuration values are missing or out of range."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration '{key}': {reason}")
