"""
Billing Service (``ledger_modules.billing.service``).

Responsibility
--------------
Prepares, saves and moves through their lifecycles the two kinds of bill a
project produces:

* Interim Payment Certificates (IPCs) -- measured work against the main
  contract, with the statutory VAT and deduction chain;
* subcontractor bills -- one subcontractor's logged work, with retention as
  the only deduction.

Pure computation is delegated to ``ledger_engines.ipc``,
``ledger_engines.subcontractor`` and ``ledger_engines.carry_forward``.

Architecture position
---------------------
**Modules layer** -- thin glue.  Drafting and recomputation are pure and
touch nothing; saving and status changes are one load -> compute -> save
unit against the project store.

Invariants enforced
-------------------
* Previous quantities are carried forward from SAVED bills in
  ``order_of_bill`` order (for a subcontractor, across all of their own
  bills); a draft whose previous quantities no longer match is refused.
* A measurement sheet (or work log) is billed at most once and selected at
  most once per bill.
* A saved IPC freezes its summary, the statutory rates used, and a hash of
  its figures, and advances each BOQ item's completed quantity.
* Negative certificates are refused unless the configuration allows them.

Failure modes
-------------
* ``UnknownBoqItemError`` -- a measurement, work log or edited row
  references an unknown BOQ item.
* ``StalePreviousQuantityError`` -- another bill was saved after the draft
  was prepared.
* ``DuplicateMeasurementError`` -- a source is already billed, or selected
  twice.
* ``ProvisionalSumExceedsGrossError`` / ``NegativeCertificateError`` --
  certificate policy.
* ``ImmutabilityViolationError`` -- stored figures no longer reproduce.
* ``InvalidTransitionError`` -- lifecycle action not valid from the status.

Usage::

    service = BillingService(store, BillingConfig.with_defaults())
    draft = service.draft_ipc("P-1", date(2024, 4, 30), date(2024, 4, 28), sheets)
    draft = service.recompute_on_edit(draft, "boq-3", Decimal("12.5"))
    bill = service.save_ipc("P-1", draft, actor_id="u-2")
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from datetime import date
from decimal import Decimal
from uuid import uuid4

from ledger_engines.carry_forward import (
    advance_completed_quantities,
    check_duplicate_sources,
    check_not_stale,
    latest_bill,
    latest_subcontractor_bill,
    verify_monotonic,
)
from ledger_engines.ipc import (
    check_certificate_policy,
    compute_summary,
    generate_items_from_sources,
    recompute_on_edit,
    summary_hash,
    verify_bill_integrity,
)
from ledger_engines.register import (
    RegisterSummary,
    ScopeWarning,
    scope_warnings,
    summarize_register,
)
from ledger_engines.subcontractor import (
    compute_subcontractor_summary,
    generate_subcontractor_items,
    summarize_subcontractor_bills,
    validate_retention_percent,
)
from ledger_kernel.domain.billing import (
    ContractBill,
    IPCDraft,
    IPCStatus,
    IPCSummary,
    MeasurementSheet,
    SubcontractorBill,
    SubcontractorBillDraft,
    SubcontractorBillingSummary,
    SubcontractorBillStatus,
    SubcontractorRate,
    SubcontractorSummary,
    WorkLogEntry,
)
from ledger_kernel.domain.project import ProjectLedger
from ledger_kernel.exceptions import ValidationError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_modules._workflow_helpers import run_transition
from ledger_modules.billing.config import BillingConfig
from ledger_modules.billing.workflows import IPC_WORKFLOW, SUBCONTRACTOR_BILL_WORKFLOW
from ledger_services.project_store import ProjectStore
from ledger_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.billing.service")

IPC_PREFIX = "IPC-"
SCB_PREFIX = "SCB-"


def _new_id() -> str:
    return str(uuid4())


def _next_order(draft_order: int, sequence: int, based_on_bill_id: str | None, latest) -> int:
    """
    Bill order at save time.

    A draft whose quantities still agree with the latest bill may have been
    overtaken by a bill that changed nothing it carries; it takes the next
    free number instead of its drafted one.
    """
    order = max(draft_order, sequence + 1)
    if order != draft_order:
        logger.info("bill_renumbered_on_save", extra={
            "drafted_order": draft_order,
            "order_of_bill": order,
            "based_on_bill_id": based_on_bill_id,
            "latest_bill_id": latest.id if latest is not None else None,
        })
    return order


class BillingService:
    """IPC and subcontractor bill operations over a project store."""

    def __init__(
        self,
        store: ProjectStore,
        config: BillingConfig | None = None,
        workflow_executor: WorkflowExecutor | None = None,
        id_factory: Callable[[], str] = _new_id,
    ):
        self._store = store
        self._config = config or BillingConfig.with_defaults()
        self._executor = workflow_executor or WorkflowExecutor()
        self._new_id = id_factory

    @property
    def config(self) -> BillingConfig:
        return self._config

    # =========================================================================
    # IPC -- drafting (pure, nothing is saved)
    # =========================================================================

    def draft_ipc(
        self,
        project_id: str,
        bill_date: date,
        date_of_measurement: date,
        sheets: Sequence[MeasurementSheet],
        provisional_sum: Decimal | int | str = 0,
        cpa_amount: Decimal | int | str = 0,
        advance_payment_deduction: Decimal | int | str = 0,
        liquidated_damages: Decimal | int | str = 0,
    ) -> IPCDraft:
        """
        Prepare the next IPC from approved measurement sheets.

        Raises:
            UnknownBoqItemError: An approved entry references an unknown item.
            DuplicateMeasurementError: A sheet is already billed or selected twice.
        """
        with LogContext.bind(project_id=project_id):
            ledger = self._store.load(project_id)
            latest = latest_bill(ledger.contract_bills)
            source_ids = tuple(s.id for s in sheets if s.is_approved)
            check_duplicate_sources(source_ids, ledger.contract_bills, lambda b: b.source_sheet_ids)

            items = generate_items_from_sources(
                ledger.register, latest, sheets, precision=self._config.amount_precision
            )
            order = ledger.ipc_sequence + 1
            draft = IPCDraft(
                bill_number=f"{IPC_PREFIX}{order}",
                order_of_bill=order,
                date=bill_date,
                date_of_measurement=date_of_measurement,
                items=items,
                provisional_sum=provisional_sum,
                cpa_amount=cpa_amount,
                advance_payment_deduction=advance_payment_deduction,
                liquidated_damages=liquidated_damages,
                source_sheet_ids=source_ids,
                based_on_bill_id=latest.id if latest else None,
            )
            logger.info("ipc_drafted", extra={
                "bill_number": draft.bill_number,
                "based_on_bill_id": draft.based_on_bill_id,
                "sheet_count": len(source_ids),
            })
            return draft

    def recompute_on_edit(
        self,
        draft: IPCDraft,
        boq_item_id: str,
        new_current_quantity: Decimal | int | str,
    ) -> IPCDraft:
        """Override one row's current quantity; other rows are untouched."""
        return draft.with_items(recompute_on_edit(
            draft.items, boq_item_id, new_current_quantity, self._config.amount_precision
        ))

    def compute_summary(self, draft: IPCDraft) -> IPCSummary:
        return compute_summary(
            draft, self._config.statutory_rates, self._config.amount_precision
        )

    # =========================================================================
    # IPC -- persistence and lifecycle
    # =========================================================================

    def save_ipc(self, project_id: str, draft: IPCDraft, actor_id: str | None = None) -> ContractBill:
        """
        Freeze a draft as a saved IPC.

        The summary, rate snapshot and figure hash are stored on the bill,
        the IPC counter advances, and every billed BOQ item's completed
        quantity moves up to the bill's upto-date quantity.
        """
        with LogContext.bind(project_id=project_id, actor_id=actor_id):
            ledger = self._store.load(project_id)
            latest = latest_bill(ledger.contract_bills)
            check_not_stale(draft.items, ledger.contract_bills)
            check_duplicate_sources(
                draft.source_sheet_ids, ledger.contract_bills, lambda b: b.source_sheet_ids
            )

            rates = self._config.statutory_rates
            summary = compute_summary(draft, rates, self._config.amount_precision)
            check_certificate_policy(summary, self._config.allow_negative_certificate)

            order = _next_order(
                draft.order_of_bill, ledger.ipc_sequence, draft.based_on_bill_id, latest
            )
            bill = ContractBill(
                id=self._new_id(),
                bill_number=f"{IPC_PREFIX}{order}",
                order_of_bill=order,
                date=draft.date,
                date_of_measurement=draft.date_of_measurement,
                items=draft.items,
                provisional_sum=draft.provisional_sum,
                cpa_amount=draft.cpa_amount,
                advance_payment_deduction=draft.advance_payment_deduction,
                liquidated_damages=draft.liquidated_damages,
                summary=summary,
                rates=rates,
                summary_hash=summary_hash(draft.items, summary, rates),
                source_sheet_ids=draft.source_sheet_ids,
            )
            register = advance_completed_quantities(ledger.register, bill.items)
            self._store.save(ledger.add_contract_bill(bill).with_register(register))

            logger.info("ipc_saved", extra={
                "bill_id": bill.id,
                "bill_number": bill.bill_number,
                "order_of_bill": bill.order_of_bill,
                "bill_amount_gross": str(summary.bill_amount_gross),
                "total_amount_payable": str(summary.total_amount_payable),
            })
            return bill

    def issue_ipc(self, project_id: str, bill_id: str, actor_id: str | None = None) -> ContractBill:
        """Draft -> Issued, after confirming the stored figures still reproduce."""
        with LogContext.bind(project_id=project_id, actor_id=actor_id, document_id=bill_id):
            ledger = self._store.load(project_id)
            bill = ledger.get_contract_bill(bill_id)
            verify_bill_integrity(bill, self._config.amount_precision)
            new_state = run_transition(
                self._executor,
                IPC_WORKFLOW,
                "contract_bill",
                bill_id,
                current_state=bill.status.value,
                action="issue",
                actor_id=actor_id,
                context=bill,
            )
            issued = bill.with_status(IPCStatus(new_state))
            self._store.save(ledger.replace_contract_bill(issued))
            return issued

    def verify_ipc(self, project_id: str, bill_id: str) -> IPCSummary:
        """Recompute a saved IPC from its stored fields; raises on any drift."""
        bill = self._store.load(project_id).get_contract_bill(bill_id)
        return verify_bill_integrity(bill, self._config.amount_precision)

    def verify_history(self, project_id: str) -> None:
        """Upto-date quantities never decrease across the project's saved IPCs."""
        verify_monotonic(self._store.load(project_id).contract_bills)

    def get_contract_bill(self, project_id: str, bill_id: str) -> ContractBill:
        return self._store.load(project_id).get_contract_bill(bill_id)

    def list_contract_bills(self, project_id: str) -> tuple[ContractBill, ...]:
        """Saved IPCs in bill order."""
        bills = self._store.load(project_id).contract_bills
        return tuple(sorted(bills, key=lambda b: b.order_of_bill))

    def latest_contract_bill(self, project_id: str) -> ContractBill | None:
        return latest_bill(self._store.load(project_id).contract_bills)

    # =========================================================================
    # Subcontractor bills
    # =========================================================================

    def draft_subcontractor_bill(
        self,
        project_id: str,
        subcontractor_id: str,
        bill_date: date,
        period_from: date,
        period_to: date,
        work_logs: Sequence[WorkLogEntry],
        rates: Iterable[SubcontractorRate] = (),
        retention_percent: Decimal | int | str | None = None,
    ) -> SubcontractorBillDraft:
        """
        Prepare the next bill for one subcontractor from their work logs.

        Raises:
            ValidationError: No subcontractor, inverted period, or a
                retention percent outside [0, 100].
            UnknownBoqItemError: A work log references an unknown item.
            DuplicateMeasurementError: A work log is already billed or selected twice.
        """
        if period_from > period_to:
            raise ValidationError("period_from", "billing period starts after it ends")
        percent = validate_retention_percent(
            self._config.default_subcontractor_retention_percent
            if retention_percent is None
            else retention_percent
        )

        with LogContext.bind(project_id=project_id):
            ledger = self._store.load(project_id)
            previous = latest_subcontractor_bill(ledger.subcontractor_bills, subcontractor_id)
            own_bills = ledger.bills_of_subcontractor(subcontractor_id)
            items = generate_subcontractor_items(
                ledger.register,
                work_logs,
                subcontractor_id,
                rates=tuple(rates),
                previous_bills=own_bills,
                precision=self._config.amount_precision,
            )
            source_ids = tuple(
                log.id for log in work_logs
                if log.subcontractor_id == subcontractor_id and log.boq_item_id
            )
            check_duplicate_sources(
                source_ids, ledger.subcontractor_bills, lambda b: b.source_work_log_ids
            )

            order = ledger.scb_sequence + 1
            draft = SubcontractorBillDraft(
                bill_number=f"{SCB_PREFIX}{order}",
                order_of_bill=order,
                subcontractor_id=subcontractor_id,
                date=bill_date,
                period_from=period_from,
                period_to=period_to,
                items=items,
                retention_percent=percent,
                source_work_log_ids=source_ids,
                based_on_bill_id=previous.id if previous else None,
            )
            logger.info("subcontractor_bill_drafted", extra={
                "bill_number": draft.bill_number,
                "subcontractor_id": subcontractor_id,
                "item_count": len(items),
            })
            return draft

    def recompute_subcontractor_on_edit(
        self,
        draft: SubcontractorBillDraft,
        boq_item_id: str,
        new_current_quantity: Decimal | int | str,
    ) -> SubcontractorBillDraft:
        return draft.with_items(recompute_on_edit(
            draft.items, boq_item_id, new_current_quantity, self._config.amount_precision
        ))

    def compute_subcontractor_summary(self, draft: SubcontractorBillDraft) -> SubcontractorSummary:
        return compute_subcontractor_summary(
            draft.items, draft.retention_percent, self._config.amount_precision
        )

    def save_subcontractor_bill(
        self,
        project_id: str,
        draft: SubcontractorBillDraft,
        actor_id: str | None = None,
    ) -> SubcontractorBill:
        """Freeze a subcontractor bill draft; it is saved in Draft status."""
        with LogContext.bind(project_id=project_id, actor_id=actor_id):
            ledger = self._store.load(project_id)
            previous = latest_subcontractor_bill(ledger.subcontractor_bills, draft.subcontractor_id)
            check_not_stale(draft.items, ledger.bills_of_subcontractor(draft.subcontractor_id))
            check_duplicate_sources(
                draft.source_work_log_ids,
                ledger.subcontractor_bills,
                lambda b: b.source_work_log_ids,
            )

            order = _next_order(
                draft.order_of_bill, ledger.scb_sequence, draft.based_on_bill_id, previous
            )
            summary = self.compute_subcontractor_summary(draft)
            bill = SubcontractorBill(
                id=self._new_id(),
                bill_number=f"{SCB_PREFIX}{order}",
                order_of_bill=order,
                subcontractor_id=draft.subcontractor_id,
                date=draft.date,
                period_from=draft.period_from,
                period_to=draft.period_to,
                items=draft.items,
                gross_amount=summary.gross_amount,
                retention_percent=summary.retention_percent,
                retention_amount=summary.retention_amount,
                net_amount=summary.net_amount,
                source_work_log_ids=draft.source_work_log_ids,
            )
            self._store.save(ledger.add_subcontractor_bill(bill))

            logger.info("subcontractor_bill_saved", extra={
                "bill_id": bill.id,
                "bill_number": bill.bill_number,
                "subcontractor_id": bill.subcontractor_id,
                "gross_amount": str(bill.gross_amount),
                "net_amount": str(bill.net_amount),
            })
            return bill

    def submit_subcontractor_bill(
        self, project_id: str, bill_id: str, actor_id: str | None = None,
    ) -> SubcontractorBill:
        return self._subcontractor_transition(project_id, bill_id, "submit", actor_id)

    def approve_subcontractor_bill(
        self, project_id: str, bill_id: str, actor_id: str | None = None,
    ) -> SubcontractorBill:
        return self._subcontractor_transition(project_id, bill_id, "approve", actor_id)

    def mark_subcontractor_bill_paid(
        self, project_id: str, bill_id: str, actor_id: str | None = None,
    ) -> SubcontractorBill:
        return self._subcontractor_transition(project_id, bill_id, "mark_paid", actor_id)

    def list_subcontractor_bills(
        self,
        project_id: str,
        subcontractor_id: str | None = None,
    ) -> tuple[SubcontractorBill, ...]:
        bills = self._store.load(project_id).subcontractor_bills
        if subcontractor_id is not None:
            bills = tuple(b for b in bills if b.subcontractor_id == subcontractor_id)
        return tuple(sorted(bills, key=lambda b: b.order_of_bill))

    def summarize_subcontractor_bills(self, project_id: str) -> SubcontractorBillingSummary:
        return summarize_subcontractor_bills(self._store.load(project_id).subcontractor_bills)

    # =========================================================================
    # Register analytics
    # =========================================================================

    def summarize_register(self, project_id: str) -> RegisterSummary:
        return summarize_register(
            self._store.load(project_id).register, self._config.amount_precision
        )

    def scope_warnings(self, project_id: str) -> tuple[ScopeWarning, ...]:
        """Items whose revised scope fell below the quantity already billed."""
        return scope_warnings(self._store.load(project_id).register)

    def _subcontractor_transition(
        self,
        project_id: str,
        bill_id: str,
        action: str,
        actor_id: str | None,
    ) -> SubcontractorBill:
        with LogContext.bind(project_id=project_id, actor_id=actor_id, document_id=bill_id):
            ledger: ProjectLedger = self._store.load(project_id)
            bill = ledger.get_subcontractor_bill(bill_id)
            new_state = run_transition(
                self._executor,
                SUBCONTRACTOR_BILL_WORKFLOW,
                "subcontractor_bill",
                bill_id,
                current_state=bill.status.value,
                action=action,
                actor_id=actor_id,
                context=bill,
            )
            updated = bill.with_status(SubcontractorBillStatus(new_state))
            self._store.save(ledger.replace_subcontractor_bill(updated))
            return updated
