"""
Subcontractor billing engine.

Pure functions with deterministic behavior. No I/O.

A simpler sibling of the IPC engine: quantities come from one
subcontractor's work logs grouped by BOQ item, the rate is the
subcontractor's own rate for the item when one is agreed (otherwise the
BOQ rate), and retention is the only deduction.

    gross     = sum of current amounts
    retention = gross x retention_percent / 100
    net       = gross - retention
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from decimal import Decimal

from ledger_engines.carry_forward import aggregate_work_logs, cumulative_quantities
from ledger_engines.ipc import make_bill_item
from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.billing import (
    BillItem,
    SubcontractorBill,
    SubcontractorBillingSummary,
    SubcontractorBillStatus,
    SubcontractorRate,
    SubcontractorSummary,
    WorkLogEntry,
)
from ledger_kernel.domain.boq import BOQRegister
from ledger_kernel.domain.values import (
    DEFAULT_AMOUNT_PRECISION,
    HUNDRED,
    ZERO,
    round_amount,
    to_decimal,
)
from ledger_kernel.exceptions import ValidationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.subcontractor")


def validate_retention_percent(value: Decimal | int | str) -> Decimal:
    """Coerce a retention percent and require it to lie in [0, 100]."""
    percent = to_decimal(value, "retention_percent")
    if not (ZERO <= percent <= HUNDRED):
        raise ValidationError("retention_percent", f"must be between 0 and 100, got {percent}")
    return percent


@traced_engine("subcontractor_items", "1.0", fingerprint_fields=("subcontractor_id", "work_logs"))
def generate_subcontractor_items(
    register: BOQRegister,
    work_logs: Sequence[WorkLogEntry],
    subcontractor_id: str,
    rates: Iterable[SubcontractorRate] = (),
    previous_bills: Iterable[SubcontractorBill] = (),
    precision: Decimal = DEFAULT_AMOUNT_PRECISION,
) -> tuple[BillItem, ...]:
    """
    One row per BOQ item the subcontractor logged work against this period.

    Rows follow register order.  Previous quantities are cumulative over
    ``previous_bills``, the subcontractor's saved bills: an item logged
    two bills ago and not since still carries its old upto-date quantity.

    Raises:
        ValidationError: No subcontractor selected, or one of
            ``previous_bills`` belongs to another subcontractor.
        UnknownBoqItemError: A work log references an unknown BOQ item.
        DuplicateMeasurementError: A work log is selected twice.
    """
    if not subcontractor_id:
        raise ValidationError("subcontractor_id", "a subcontractor must be selected")
    previous_bills = tuple(previous_bills)
    for bill in previous_bills:
        if bill.subcontractor_id != subcontractor_id:
            raise ValidationError(
                "previous_bills",
                f"bill {bill.bill_number} belongs to another subcontractor",
            )

    t0 = time.monotonic()
    logger.info("subcontractor_items_generation_started", extra={
        "subcontractor_id": subcontractor_id,
        "work_log_count": len(work_logs),
        "previous_bill_count": len(previous_bills),
    })

    overrides = {r.boq_item_id: r.rate for r in rates}
    previous = cumulative_quantities(previous_bills)
    current = aggregate_work_logs(register, work_logs, subcontractor_id)
    items = tuple(
        make_bill_item(
            boq_item,
            previous.get(boq_item.id, ZERO),
            current.quantity_for(boq_item.id),
            rate=overrides.get(boq_item.id),
            precision=precision,
        )
        for boq_item in register
        if boq_item.id in current.quantities
    )

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.info("subcontractor_items_generation_completed", extra={
        "subcontractor_id": subcontractor_id,
        "item_count": len(items),
        "rate_overrides_applied": sum(1 for i in items if i.boq_item_id in overrides),
        "duration_ms": duration_ms,
    })
    return items


def compute_subcontractor_summary(
    items: Sequence[BillItem],
    retention_percent: Decimal | int | str,
    precision: Decimal = DEFAULT_AMOUNT_PRECISION,
) -> SubcontractorSummary:
    percent = validate_retention_percent(retention_percent)
    gross = round_amount(sum((i.current_amount for i in items), ZERO), precision)
    retention = round_amount(gross * percent / HUNDRED, precision)
    return SubcontractorSummary(
        gross_amount=gross,
        retention_percent=percent,
        retention_amount=retention,
        net_amount=gross - retention,
    )


def summarize_subcontractor_bills(
    bills: Iterable[SubcontractorBill],
) -> SubcontractorBillingSummary:
    """
    Net-amount totals overall, per status and per subcontractor.

    Pending is the value of bills awaiting approval (Submitted).
    """
    bills = tuple(bills)

    def total(status: SubcontractorBillStatus) -> Decimal:
        return sum((b.net_amount for b in bills if b.status == status), ZERO)

    by_subcontractor: dict[str, Decimal] = {}
    for bill in bills:
        by_subcontractor[bill.subcontractor_id] = (
            by_subcontractor.get(bill.subcontractor_id, ZERO) + bill.net_amount
        )

    return SubcontractorBillingSummary(
        total_bills=len(bills),
        total_amount=sum((b.net_amount for b in bills), ZERO),
        pending_amount=total(SubcontractorBillStatus.SUBMITTED),
        approved_amount=total(SubcontractorBillStatus.APPROVED),
        paid_amount=total(SubcontractorBillStatus.PAID),
        by_subcontractor=by_subcontractor,
    )
