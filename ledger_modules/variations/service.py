"""
Variation Order Service (``ledger_modules.variations.service``).

Responsibility
--------------
Stages and decides contract-scope changes: drafts, item staging, the
submit / approve / reject / revise cycle, and deletion of drafts.  The
register mutation itself is delegated to the pure
``ledger_engines.variation.apply_variation``.

Architecture position
---------------------
**Modules layer** -- thin glue.  Every public method is one load ->
compute -> save unit against the project store, so a concurrent writer
surfaces as ``OptimisticLockError`` instead of a lost update.

Invariants enforced
-------------------
* VO numbers come from the aggregate's counter and are never reused.
* Items are only staged or removed while the VO is Draft.
* Approval is all-or-nothing and terminal; the approved VO and the new
  register are saved together.
* Only Draft VOs can be deleted.

Failure modes
-------------
* ``ValidationError`` -- empty title, zero delta, missing description,
  submit without items.
* ``UnknownBoqItemError`` -- staged or approved item references a BOQ line
  that does not exist.
* ``VariationNotDraftError`` -- staging, removing or deleting outside Draft.
* ``InvalidTransitionError`` -- lifecycle action not valid from the current
  status (including anything after Approved).
* ``UnauthorizedApproverError`` -- approve/reject by a non-approver role.

Usage::

    service = VariationService(store, clock=clock)
    vo = service.create_draft("P-1", "Extra drainage", "Site instruction 12", date(2024, 3, 1))
    service.stage_item("P-1", vo.id, quantity_delta=Decimal("20"), boq_item_id="boq-1")
    service.submit("P-1", vo.id)
    result = service.approve("P-1", vo.id, actor_id="u-7", actor_role="project_manager")
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

from ledger_config.schema import LedgerConfiguration
from ledger_engines.register import ScopeWarning
from ledger_engines.variation import apply_variation
from ledger_kernel.domain.boq import BOQRegister
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.project import ProjectLedger
from ledger_kernel.domain.values import to_decimal
from ledger_kernel.domain.variation import VariationItem, VariationOrder, VariationStatus
from ledger_kernel.exceptions import ValidationError, VariationNotDraftError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_modules._workflow_helpers import run_transition
from ledger_modules.variations.workflows import (
    DEFAULT_APPROVER_ROLES,
    build_variation_workflow,
)
from ledger_services.project_store import ProjectStore
from ledger_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.variations.service")

VO_PREFIX = "VO-"


@dataclass(frozen=True)
class VariationApprovalResult:
    """An approved variation order and the register it produced."""

    variation: VariationOrder
    register: BOQRegister
    added_item_ids: tuple[str, ...]
    updated_item_ids: tuple[str, ...]
    warnings: tuple[ScopeWarning, ...] = ()


def _new_id() -> str:
    return str(uuid4())


class VariationService:
    """Variation order lifecycle over a project store."""

    def __init__(
        self,
        store: ProjectStore,
        config: LedgerConfiguration | None = None,
        clock: Clock | None = None,
        workflow_executor: WorkflowExecutor | None = None,
        id_factory: Callable[[], str] = _new_id,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._executor = workflow_executor or WorkflowExecutor()
        self._new_id = id_factory
        roles = config.approvals.variation_approver_roles if config else DEFAULT_APPROVER_ROLES
        self._workflow = build_variation_workflow(tuple(roles))

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, project_id: str, variation_id: str) -> VariationOrder:
        return self._store.load(project_id).get_variation(variation_id)

    def list_variations(
        self,
        project_id: str,
        status: VariationStatus | None = None,
    ) -> tuple[VariationOrder, ...]:
        ledger = self._store.load(project_id)
        if status is None:
            return ledger.variation_orders
        return tuple(v for v in ledger.variation_orders if v.status == VariationStatus(status))

    # =========================================================================
    # Drafting
    # =========================================================================

    def create_draft(
        self,
        project_id: str,
        title: str,
        reason: str,
        vo_date: date,
        actor_id: str | None = None,
    ) -> VariationOrder:
        """Create an empty Draft VO numbered from the project's VO counter."""
        if not title or not title.strip():
            raise ValidationError("title", "a variation order needs a title")

        with LogContext.bind(project_id=project_id, actor_id=actor_id):
            ledger = self._store.load(project_id)
            vo = VariationOrder(
                id=self._new_id(),
                vo_number=f"{VO_PREFIX}{ledger.vo_sequence + 1}",
                title=title.strip(),
                reason=reason,
                date=vo_date,
            )
            self._store.save(ledger.add_variation(vo))
            logger.info("variation_draft_created", extra={
                "variation_id": vo.id,
                "vo_number": vo.vo_number,
            })
            return vo

    def update_details(
        self,
        project_id: str,
        variation_id: str,
        title: str | None = None,
        reason: str | None = None,
        vo_date: date | None = None,
    ) -> VariationOrder:
        """Edit the header of a Draft VO."""
        if title is not None and not title.strip():
            raise ValidationError("title", "a variation order needs a title")

        def change(vo: VariationOrder) -> VariationOrder:
            return replace(
                vo,
                title=vo.title if title is None else title.strip(),
                reason=vo.reason if reason is None else reason,
                date=vo.date if vo_date is None else vo_date,
            )

        return self._edit_draft(project_id, variation_id, "update_details", change)

    def stage_item(
        self,
        project_id: str,
        variation_id: str,
        quantity_delta: Decimal | int | str,
        boq_item_id: str | None = None,
        is_new_item: bool = False,
        description: str | None = None,
        unit: str | None = None,
        rate: Decimal | int | str | None = None,
        item_id: str | None = None,
    ) -> VariationOrder:
        """
        Append an item to a Draft VO.

        For an existing BOQ line, description, unit and rate default to the
        line's own values.  New-scope items need a description and a rate.

        Raises:
            UnknownBoqItemError: ``boq_item_id`` is not in the register.
            ValidationError: zero delta, or a malformed new-scope item.
            VariationNotDraftError: the VO is not Draft.
        """
        ledger = self._store.load(project_id)

        if is_new_item:
            if rate is None:
                raise ValidationError("rate", "new-scope items need a rate")
            item = VariationItem(
                id=item_id or self._new_id(),
                description=description or "",
                unit=unit or "",
                quantity_delta=to_decimal(quantity_delta, "quantity_delta"),
                rate=to_decimal(rate, "rate"),
                is_new_item=True,
            )
        else:
            if not boq_item_id:
                raise ValidationError("boq_item_id", "required unless is_new_item is set")
            boq_item = ledger.register.get(boq_item_id, context=f"variation {variation_id}")
            item = VariationItem(
                id=item_id or self._new_id(),
                description=boq_item.description if description is None else description,
                unit=boq_item.unit if unit is None else unit,
                quantity_delta=to_decimal(quantity_delta, "quantity_delta"),
                rate=boq_item.rate if rate is None else to_decimal(rate, "rate"),
                boq_item_id=boq_item.id,
            )

        vo = self._edit_draft(
            project_id, variation_id, "stage_item", lambda v: v.with_item(item), ledger=ledger
        )
        logger.info("variation_item_staged", extra={
            "variation_id": variation_id,
            "item_id": item.id,
            "boq_item_id": item.boq_item_id,
            "is_new_item": item.is_new_item,
            "quantity_delta": str(item.quantity_delta),
            "total_impact": str(vo.total_impact),
        })
        return vo

    def remove_item(self, project_id: str, variation_id: str, item_id: str) -> VariationOrder:
        vo = self._edit_draft(
            project_id, variation_id, "remove_item", lambda v: v.without_item(item_id)
        )
        logger.info("variation_item_removed", extra={
            "variation_id": variation_id,
            "item_id": item_id,
        })
        return vo

    def delete(self, project_id: str, variation_id: str, actor_id: str | None = None) -> None:
        """
        Delete a Draft VO.  Its number is not handed out again.

        Raises:
            VariationNotDraftError: the VO has left Draft.
        """
        with LogContext.bind(project_id=project_id, actor_id=actor_id, document_id=variation_id):
            ledger = self._store.load(project_id)
            vo = ledger.get_variation(variation_id)
            if not vo.is_draft:
                logger.warning("variation_delete_refused", extra={
                    "variation_id": variation_id,
                    "status": vo.status.value,
                })
                raise VariationNotDraftError(variation_id, vo.status.value, "delete")
            self._store.save(ledger.remove_variation(variation_id))
            logger.info("variation_deleted", extra={
                "variation_id": variation_id,
                "vo_number": vo.vo_number,
            })

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def submit(self, project_id: str, variation_id: str, actor_id: str | None = None) -> VariationOrder:
        """Draft -> Submitted; requires a title and at least one item."""
        return self._transition(project_id, variation_id, "submit", actor_id, None)

    def reject(
        self,
        project_id: str,
        variation_id: str,
        actor_id: str | None = None,
        actor_role: str | None = None,
    ) -> VariationOrder:
        """Submitted -> Rejected."""
        return self._transition(project_id, variation_id, "reject", actor_id, actor_role)

    def revise_draft(
        self,
        project_id: str,
        variation_id: str,
        actor_id: str | None = None,
    ) -> VariationOrder:
        """Rejected -> Draft, reopening the VO for edits."""
        return self._transition(project_id, variation_id, "revise_draft", actor_id, None)

    def approve(
        self,
        project_id: str,
        variation_id: str,
        actor_id: str | None = None,
        actor_role: str | None = None,
    ) -> VariationApprovalResult:
        """
        Submitted -> Approved, applying every item to the BOQ register.

        The approved VO and the new register are saved in one write; if any
        item is invalid nothing is saved.
        """
        with LogContext.bind(project_id=project_id, actor_id=actor_id, document_id=variation_id):
            ledger = self._store.load(project_id)
            vo = ledger.get_variation(variation_id)
            new_state = run_transition(
                self._executor,
                self._workflow,
                "variation_order",
                variation_id,
                current_state=vo.status.value,
                action="approve",
                actor_id=actor_id,
                actor_role=actor_role,
                context=vo,
            )

            application = apply_variation(ledger.register, vo)
            approved = replace(
                vo,
                status=VariationStatus(new_state),
                approved_at=self._clock.now(),
                approved_by=actor_id,
            )
            self._store.save(
                ledger.with_register(application.register).replace_variation(approved)
            )

            logger.info("variation_approved", extra={
                "variation_id": variation_id,
                "vo_number": vo.vo_number,
                "total_impact": str(approved.total_impact),
                "added_items": len(application.added_item_ids),
                "updated_items": len(application.updated_item_ids),
                "warning_count": len(application.warnings),
            })
            return VariationApprovalResult(
                variation=approved,
                register=application.register,
                added_item_ids=application.added_item_ids,
                updated_item_ids=application.updated_item_ids,
                warnings=application.warnings,
            )

    # =========================================================================
    # Internals
    # =========================================================================

    def _transition(
        self,
        project_id: str,
        variation_id: str,
        action: str,
        actor_id: str | None,
        actor_role: str | None,
    ) -> VariationOrder:
        with LogContext.bind(project_id=project_id, actor_id=actor_id, document_id=variation_id):
            ledger = self._store.load(project_id)
            vo = ledger.get_variation(variation_id)
            new_state = run_transition(
                self._executor,
                self._workflow,
                "variation_order",
                variation_id,
                current_state=vo.status.value,
                action=action,
                actor_id=actor_id,
                actor_role=actor_role,
                context=vo,
            )
            updated = vo.with_status(VariationStatus(new_state))
            self._store.save(ledger.replace_variation(updated))
            return updated

    def _edit_draft(
        self,
        project_id: str,
        variation_id: str,
        operation: str,
        change: Callable[[VariationOrder], VariationOrder],
        ledger: ProjectLedger | None = None,
    ) -> VariationOrder:
        with LogContext.bind(project_id=project_id, document_id=variation_id):
            ledger = ledger or self._store.load(project_id)
            vo = ledger.get_variation(variation_id)
            if not vo.is_draft:
                raise VariationNotDraftError(variation_id, vo.status.value, operation)
            updated = change(vo)
            self._store.save(ledger.replace_variation(updated))
            return updated
