"""
Billing records (``ledger_kernel.domain.billing``).

Responsibility
--------------
Frozen value objects for Interim Payment Certificates (IPCs), subcontractor
bills, and the collaborator inputs they are computed from (measurement
sheets, work logs, subcontractor rate overrides).

Architecture position
---------------------
**Kernel domain layer** -- pure data, ZERO I/O.  Computation lives in
``ledger_engines.ipc``, ``ledger_engines.carry_forward`` and
``ledger_engines.subcontractor``.

Invariants enforced
-------------------
* ``upto_date_quantity == previous_quantity + current_quantity`` on every
  ``BillItem``.
* All monetary and quantity fields are ``Decimal``.
* Saved bills (``ContractBill``, ``SubcontractorBill``) are frozen; only a
  status transition produces a changed copy.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum

from ledger_kernel.domain.values import ZERO, to_decimal
from ledger_kernel.exceptions import ValidationError


class IPCStatus(str, Enum):
    """Interim payment certificate lifecycle states."""

    DRAFT = "Draft"
    ISSUED = "Issued"


class SubcontractorBillStatus(str, Enum):
    """Subcontractor bill lifecycle states."""

    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    APPROVED = "Approved"
    PAID = "Paid"


# ---------------------------------------------------------------------------
# Collaborator inputs
# ---------------------------------------------------------------------------


def _source_quantity(value: Decimal | int | str) -> Decimal:
    # Reductions go through a variation, never a negative measurement.
    quantity = to_decimal(value, "quantity")
    if quantity < ZERO:
        raise ValidationError("quantity", f"must not be negative, got {quantity}")
    return quantity


@dataclass(frozen=True)
class MeasurementEntry:
    """One measured quantity against a BOQ item."""

    boq_item_id: str
    quantity: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity", _source_quantity(self.quantity))


@dataclass(frozen=True)
class MeasurementSheet:
    """A measurement sheet; only ``Approved`` sheets are billable."""

    id: str
    status: str
    entries: tuple[MeasurementEntry, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", tuple(self.entries))

    @property
    def is_approved(self) -> bool:
        return self.status == "Approved"


@dataclass(frozen=True)
class WorkLogEntry:
    """Quantity of work logged by a subcontractor against a BOQ item."""

    id: str
    boq_item_id: str | None
    subcontractor_id: str
    quantity: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity", _source_quantity(self.quantity))


@dataclass(frozen=True)
class SubcontractorRate:
    """A subcontractor-specific rate overriding the BOQ rate for one item."""

    boq_item_id: str
    rate: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "rate", to_decimal(self.rate, "rate"))


# ---------------------------------------------------------------------------
# Bill lines and summaries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BillItem:
    """A line within an IPC or subcontractor bill."""

    boq_item_id: str
    item_no: str
    description: str
    unit: str
    contract_quantity: Decimal
    rate: Decimal
    previous_quantity: Decimal
    current_quantity: Decimal
    upto_date_quantity: Decimal
    previous_amount: Decimal
    current_amount: Decimal
    upto_date_amount: Decimal

    def __post_init__(self) -> None:
        for attr in (
            "contract_quantity", "rate",
            "previous_quantity", "current_quantity", "upto_date_quantity",
            "previous_amount", "current_amount", "upto_date_amount",
        ):
            object.__setattr__(self, attr, to_decimal(getattr(self, attr), attr))
        if self.upto_date_quantity != self.previous_quantity + self.current_quantity:
            raise ValueError(
                f"Bill item {self.item_no}: upto_date_quantity {self.upto_date_quantity} != "
                f"previous {self.previous_quantity} + current {self.current_quantity}"
            )


@dataclass(frozen=True)
class StatutoryRates:
    """
    Statutory percentages applied to an IPC, expressed as decimals.

    Defaults are the contract's standard deductions: 13% VAT, 5% retention,
    1.5% advance income tax, 0.1% contractor development fund, and 30% of
    VAT withheld as deductible VAT.
    """

    vat: Decimal = Decimal("0.13")
    retention: Decimal = Decimal("0.05")
    advance_income_tax: Decimal = Decimal("0.015")
    contractor_dev_fund: Decimal = Decimal("0.001")
    deductible_vat_share: Decimal = Decimal("0.30")

    def __post_init__(self) -> None:
        for attr in (
            "vat", "retention", "advance_income_tax",
            "contractor_dev_fund", "deductible_vat_share",
        ):
            val = to_decimal(getattr(self, attr), attr)
            if not (ZERO <= val <= Decimal("1")):
                raise ValueError(f"{attr} rate must be between 0 and 1")
            object.__setattr__(self, attr, val)


@dataclass(frozen=True)
class IPCSummary:
    """Derived financial summary of an IPC, in evaluation order."""

    bill_amount_gross: Decimal
    cpa_amount: Decimal
    bill_amount_with_cpa: Decimal
    bill_amount_without_ps: Decimal
    vat_amount: Decimal
    total_bill_with_vat: Decimal
    retention_amount: Decimal
    advance_income_tax: Decimal
    contractor_dev_fund: Decimal
    deductable_vat: Decimal
    advance_payment_deduction: Decimal
    liquidated_damages: Decimal
    total_deductions: Decimal
    total_amount_payable: Decimal


@dataclass(frozen=True)
class IPCDraft:
    """
    An IPC being prepared (the bill form).

    Never persisted.  ``based_on_bill_id`` records which saved IPC the
    previous quantities were carried forward from, so a save can detect
    that the draft went stale.
    """

    bill_number: str
    order_of_bill: int
    date: date
    date_of_measurement: date
    items: tuple[BillItem, ...] = ()
    provisional_sum: Decimal = ZERO
    cpa_amount: Decimal = ZERO
    advance_payment_deduction: Decimal = ZERO
    liquidated_damages: Decimal = ZERO
    source_sheet_ids: tuple[str, ...] = ()
    based_on_bill_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "source_sheet_ids", tuple(self.source_sheet_ids))
        for attr in ("provisional_sum", "cpa_amount", "advance_payment_deduction", "liquidated_damages"):
            object.__setattr__(self, attr, to_decimal(getattr(self, attr), attr))

    def with_items(self, items: tuple[BillItem, ...]) -> IPCDraft:
        return replace(self, items=tuple(items))


@dataclass(frozen=True)
class ContractBill:
    """
    A saved Interim Payment Certificate.

    Immutable once saved except for its status transition.  ``rates`` is the
    statutory rate snapshot the summary was computed with and
    ``summary_hash`` fingerprints the frozen figures.
    """

    id: str
    bill_number: str
    order_of_bill: int
    date: date
    date_of_measurement: date
    items: tuple[BillItem, ...]
    provisional_sum: Decimal
    cpa_amount: Decimal
    advance_payment_deduction: Decimal
    liquidated_damages: Decimal
    summary: IPCSummary
    rates: StatutoryRates
    summary_hash: str
    source_sheet_ids: tuple[str, ...] = ()
    status: IPCStatus = IPCStatus.DRAFT

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "source_sheet_ids", tuple(self.source_sheet_ids))
        object.__setattr__(self, "status", IPCStatus(self.status))

    def find_item(self, boq_item_id: str) -> BillItem | None:
        for item in self.items:
            if item.boq_item_id == boq_item_id:
                return item
        return None

    def with_status(self, status: IPCStatus) -> ContractBill:
        return replace(self, status=status)


@dataclass(frozen=True)
class SubcontractorSummary:
    """Retention is the only deduction on a subcontractor bill."""

    gross_amount: Decimal
    retention_percent: Decimal
    retention_amount: Decimal
    net_amount: Decimal


@dataclass(frozen=True)
class SubcontractorBillDraft:
    """A subcontractor bill being prepared."""

    bill_number: str
    order_of_bill: int
    subcontractor_id: str
    date: date
    period_from: date
    period_to: date
    items: tuple[BillItem, ...] = ()
    retention_percent: Decimal = Decimal("5")
    source_work_log_ids: tuple[str, ...] = ()
    based_on_bill_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "source_work_log_ids", tuple(self.source_work_log_ids))
        object.__setattr__(
            self, "retention_percent", to_decimal(self.retention_percent, "retention_percent")
        )

    def with_items(self, items: tuple[BillItem, ...]) -> SubcontractorBillDraft:
        return replace(self, items=tuple(items))


@dataclass(frozen=True)
class SubcontractorBill:
    """A saved subcontractor bill."""

    id: str
    bill_number: str
    order_of_bill: int
    subcontractor_id: str
    date: date
    period_from: date
    period_to: date
    items: tuple[BillItem, ...]
    gross_amount: Decimal
    retention_percent: Decimal
    retention_amount: Decimal
    net_amount: Decimal
    source_work_log_ids: tuple[str, ...] = ()
    status: SubcontractorBillStatus = SubcontractorBillStatus.DRAFT

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "source_work_log_ids", tuple(self.source_work_log_ids))
        object.__setattr__(self, "status", SubcontractorBillStatus(self.status))

    def with_status(self, status: SubcontractorBillStatus) -> SubcontractorBill:
        return replace(self, status=status)


@dataclass(frozen=True)
class SubcontractorBillingSummary:
    """Net-amount totals across a project's subcontractor bills."""

    total_bills: int
    total_amount: Decimal
    pending_amount: Decimal
    approved_amount: Decimal
    paid_amount: Decimal
    by_subcontractor: dict[str, Decimal] = field(default_factory=dict)
