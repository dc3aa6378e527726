"""
Carry-forward reconciliation.

Pure functions with deterministic behavior. No I/O.

Each bill's previous quantities are what the SAVED bills before it brought
each BOQ item up to, walked explicitly by ``order_of_bill`` rather than by
list position.  An IPC lists every BOQ item, so for IPCs this is simply the
latest bill; a subcontractor bill lists only the items logged that period,
so an item keeps the quantity of the last bill that carried it.  This module
owns that lookup, the aggregation of measurement sheets and work logs into
current-period quantities, and the checks that keep the chain of bills
consistent:

- upto-date quantities never decrease from one bill to the next;
- a measurement sheet or work log is billed at most once, and selected at
  most once for a single bill;
- a draft whose previous quantities no longer match the saved bills is
  refused as stale;
- saving an IPC advances each BOQ item's completed quantity.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol, TypeVar

from ledger_kernel.domain.billing import (
    BillItem,
    MeasurementSheet,
    SubcontractorBill,
    WorkLogEntry,
)
from ledger_kernel.domain.boq import BOQRegister
from ledger_kernel.domain.values import ZERO
from ledger_kernel.exceptions import (
    DuplicateMeasurementError,
    QuantityRegressionError,
    StalePreviousQuantityError,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.carry_forward")


class SavedBill(Protocol):
    id: str
    bill_number: str
    order_of_bill: int
    items: tuple[BillItem, ...]


B = TypeVar("B", bound=SavedBill)


@dataclass(frozen=True)
class SourceQuantities:
    """Current-period quantities per BOQ item and the sources they came from."""

    quantities: dict[str, Decimal] = field(default_factory=dict)
    source_ids: tuple[str, ...] = ()

    def quantity_for(self, boq_item_id: str) -> Decimal:
        return self.quantities.get(boq_item_id, ZERO)


# ---------------------------------------------------------------------------
# Latest-bill lookup
# ---------------------------------------------------------------------------


def latest_bill(bills: Iterable[B]) -> B | None:
    """The saved bill with the highest ``order_of_bill``, or None."""
    latest = None
    for bill in bills:
        if latest is None or bill.order_of_bill > latest.order_of_bill:
            latest = bill
    return latest


def latest_subcontractor_bill(
    bills: Iterable[SubcontractorBill],
    subcontractor_id: str,
) -> SubcontractorBill | None:
    """Latest saved bill for one subcontractor; other subcontractors never carry over."""
    return latest_bill(b for b in bills if b.subcontractor_id == subcontractor_id)


def previous_quantities(bill: SavedBill | None) -> dict[str, Decimal]:
    """Upto-date quantity per BOQ item on ``bill``; empty when there is none."""
    if bill is None:
        return {}
    return {item.boq_item_id: item.upto_date_quantity for item in bill.items}


def cumulative_quantities(bills: Iterable[SavedBill]) -> dict[str, Decimal]:
    """
    Upto-date quantity per BOQ item across ``bills`` in ``order_of_bill`` order.

    An item missing from a later bill keeps the quantity of the last bill
    that listed it.
    """
    running: dict[str, Decimal] = {}
    for bill in sorted(bills, key=lambda b: b.order_of_bill):
        for item in bill.items:
            running[item.boq_item_id] = item.upto_date_quantity
    return running


# ---------------------------------------------------------------------------
# Source aggregation
# ---------------------------------------------------------------------------


def _select_once(selected: set[str], source_id: str) -> None:
    if source_id in selected:
        logger.warning("duplicate_billing_source", extra={"source_id": source_id})
        raise DuplicateMeasurementError(source_id)
    selected.add(source_id)


def aggregate_measurements(
    register: BOQRegister,
    sheets: Sequence[MeasurementSheet],
) -> SourceQuantities:
    """
    Sum approved measurement entries per BOQ item.

    Sheets not in "Approved" status are ignored.  Every entry of an approved
    sheet must reference a BOQ item in ``register``.

    Raises:
        UnknownBoqItemError: An approved entry references an unknown item.
        DuplicateMeasurementError: An approved sheet is selected twice.
    """
    quantities: dict[str, Decimal] = {}
    used: list[str] = []
    selected: set[str] = set()
    for sheet in sheets:
        if not sheet.is_approved:
            logger.debug("measurement_sheet_skipped", extra={
                "sheet_id": sheet.id,
                "status": sheet.status,
            })
            continue
        _select_once(selected, sheet.id)
        for entry in sheet.entries:
            register.get(entry.boq_item_id, context=f"measurement sheet {sheet.id}")
            quantities[entry.boq_item_id] = quantities.get(entry.boq_item_id, ZERO) + entry.quantity
        used.append(sheet.id)
    return SourceQuantities(quantities=quantities, source_ids=tuple(used))


def aggregate_work_logs(
    register: BOQRegister,
    work_logs: Sequence[WorkLogEntry],
    subcontractor_id: str,
) -> SourceQuantities:
    """
    Group one subcontractor's work logs by BOQ item.

    Logs of other subcontractors are ignored, as are logs not booked
    against any BOQ item.

    Raises:
        UnknownBoqItemError: A log references an item not in ``register``.
        DuplicateMeasurementError: A log is selected twice.
    """
    quantities: dict[str, Decimal] = {}
    used: list[str] = []
    selected: set[str] = set()
    for log in work_logs:
        if log.subcontractor_id != subcontractor_id or not log.boq_item_id:
            continue
        _select_once(selected, log.id)
        register.get(log.boq_item_id, context=f"work log {log.id}")
        quantities[log.boq_item_id] = quantities.get(log.boq_item_id, ZERO) + log.quantity
        used.append(log.id)
    return SourceQuantities(quantities=quantities, source_ids=tuple(used))


# ---------------------------------------------------------------------------
# Consistency checks
# ---------------------------------------------------------------------------


def check_duplicate_sources(
    source_ids: Iterable[str],
    bills: Iterable[B],
    sources_of: Callable[[B], Iterable[str]],
) -> None:
    """
    Refuse sources already billed by a saved bill, or listed twice.

    Raises:
        DuplicateMeasurementError: naming the first offending source.
    """
    billed: dict[str, str] = {}
    for bill in bills:
        for source_id in sources_of(bill):
            billed.setdefault(source_id, bill.bill_number)
    selected: set[str] = set()
    for source_id in source_ids:
        _select_once(selected, source_id)
        if source_id in billed:
            logger.warning("duplicate_billing_source", extra={
                "source_id": source_id,
                "bill_number": billed[source_id],
            })
            raise DuplicateMeasurementError(source_id, billed[source_id])


def check_not_stale(items: Sequence[BillItem], bills: Iterable[SavedBill]) -> None:
    """
    Every row's previous quantity must equal its cumulative saved quantity.

    ``bills`` are the saved bills the draft carries forward from: all of a
    project's IPCs, or one subcontractor's bills.

    Raises:
        StalePreviousQuantityError: A bill was saved after this draft was built.
    """
    expected = cumulative_quantities(bills)
    for item in items:
        want = expected.get(item.boq_item_id, ZERO)
        if item.previous_quantity != want:
            logger.warning("stale_previous_quantity", extra={
                "boq_item_id": item.boq_item_id,
                "expected": str(want),
                "actual": str(item.previous_quantity),
            })
            raise StalePreviousQuantityError(item.boq_item_id, want, item.previous_quantity)


def verify_monotonic(bills: Iterable[SavedBill]) -> None:
    """
    Upto-date quantities never decrease across saved bills in bill order.

    Items absent from a later bill are treated as unchanged.

    Raises:
        QuantityRegressionError: naming the first item that went backwards.
    """
    running: dict[str, Decimal] = {}
    for bill in sorted(bills, key=lambda b: b.order_of_bill):
        for item in bill.items:
            prior = running.get(item.boq_item_id, ZERO)
            if item.upto_date_quantity < prior:
                raise QuantityRegressionError(item.boq_item_id, prior, item.upto_date_quantity)
            running[item.boq_item_id] = item.upto_date_quantity


def advance_completed_quantities(
    register: BOQRegister,
    items: Sequence[BillItem],
) -> BOQRegister:
    """
    Set each billed item's completed quantity to its upto-date quantity.

    Raises:
        UnknownBoqItemError: A row references an item not in ``register``.
        QuantityRegressionError: A row would move completion backwards.
    """
    updated = {}
    for item in items:
        boq_item = register.get(item.boq_item_id, context="completed quantity update")
        if item.upto_date_quantity != boq_item.completed_quantity:
            updated[boq_item.id] = boq_item.with_completed_quantity(item.upto_date_quantity)
    return register.replace_items(updated)
