"""
Interim Payment Certificate (IPC) engine.

Pure functions with deterministic behavior. No I/O.

Builds the rows of a draft certificate from approved measurements and the
latest saved certificate, recomputes a single row when a reviewer overrides
its current quantity, and derives the financial summary in a fixed order:

    1. gross            = sum of current amounts
    2. with CPA         = gross + CPA
    3. without PS       = with CPA - provisional sum
    4. VAT              = without PS x vat rate
    5. total with VAT   = without PS + VAT + provisional sum
    6. retention, advance income tax and contractor development fund are
       taken off "with CPA"; deductible VAT is a share of VAT
    7. payable          = total with VAT - all deductions

Each step is rounded to the amount precision before it feeds the next one,
so the order of evaluation is part of the contract.

Usage:
    from ledger_engines.ipc import generate_items_from_sources, compute_summary

    items = generate_items_from_sources(register, latest_ipc, sheets)
    draft = draft.with_items(items)
    summary = compute_summary(draft, StatutoryRates())
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from decimal import Decimal
from typing import Protocol

from ledger_engines.carry_forward import aggregate_measurements, previous_quantities
from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.billing import (
    BillItem,
    ContractBill,
    IPCSummary,
    MeasurementSheet,
    StatutoryRates,
)
from ledger_kernel.domain.boq import BOQItem, BOQRegister
from ledger_kernel.domain.codec import bill_item_to_dict, rates_to_dict, summary_to_dict
from ledger_kernel.domain.values import (
    DEFAULT_AMOUNT_PRECISION,
    ZERO,
    extend,
    round_amount,
    to_decimal,
)
from ledger_kernel.exceptions import (
    ImmutabilityViolationError,
    NegativeCertificateError,
    ProvisionalSumExceedsGrossError,
    UnknownBoqItemError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.utils.hashing import hash_bill_figures

logger = get_logger("engines.ipc")


class BillForm(Protocol):
    """Fields the summary is derived from; satisfied by drafts and saved bills."""

    items: tuple[BillItem, ...]
    provisional_sum: Decimal
    cpa_amount: Decimal
    advance_payment_deduction: Decimal
    liquidated_damages: Decimal


def make_bill_item(
    boq_item: BOQItem,
    previous_quantity: Decimal,
    current_quantity: Decimal,
    rate: Decimal | None = None,
    precision: Decimal = DEFAULT_AMOUNT_PRECISION,
) -> BillItem:
    """A bill row for ``boq_item``; ``rate`` overrides the BOQ rate when given."""
    rate = boq_item.rate if rate is None else rate
    upto_date = previous_quantity + current_quantity
    return BillItem(
        boq_item_id=boq_item.id,
        item_no=boq_item.item_no,
        description=boq_item.description,
        unit=boq_item.unit,
        contract_quantity=boq_item.contract_quantity,
        rate=rate,
        previous_quantity=previous_quantity,
        current_quantity=current_quantity,
        upto_date_quantity=upto_date,
        previous_amount=extend(previous_quantity, rate, precision),
        current_amount=extend(current_quantity, rate, precision),
        upto_date_amount=extend(upto_date, rate, precision),
    )


@traced_engine("ipc_items", "1.0", fingerprint_fields=("sheets",))
def generate_items_from_sources(
    register: BOQRegister,
    latest_ipc: ContractBill | None,
    sheets: Sequence[MeasurementSheet],
    precision: Decimal = DEFAULT_AMOUNT_PRECISION,
) -> tuple[BillItem, ...]:
    """
    One row per BOQ item, carried forward from ``latest_ipc``.

    Items added to the register after ``latest_ipc`` was saved start from a
    previous quantity of zero.

    Raises:
        UnknownBoqItemError: An approved measurement references an unknown item.
    """
    t0 = time.monotonic()
    logger.info("ipc_items_generation_started", extra={
        "boq_item_count": len(register),
        "sheet_count": len(sheets),
        "latest_bill_number": latest_ipc.bill_number if latest_ipc else None,
    })

    previous = previous_quantities(latest_ipc)
    current = aggregate_measurements(register, sheets)
    items = tuple(
        make_bill_item(
            boq_item,
            previous.get(boq_item.id, ZERO),
            current.quantity_for(boq_item.id),
            precision=precision,
        )
        for boq_item in register
    )

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.info("ipc_items_generation_completed", extra={
        "item_count": len(items),
        "measured_item_count": len(current.quantities),
        "duration_ms": duration_ms,
    })
    return items


def recompute_on_edit(
    items: Sequence[BillItem],
    boq_item_id: str,
    new_current_quantity: Decimal | int | str,
    precision: Decimal = DEFAULT_AMOUNT_PRECISION,
) -> tuple[BillItem, ...]:
    """
    Override the current quantity of one row and recompute only that row.

    Raises:
        UnknownBoqItemError: No row for ``boq_item_id``.
        ValidationError: ``new_current_quantity`` is negative.
    """
    quantity = to_decimal(new_current_quantity, "current_quantity")
    if quantity < ZERO:
        raise ValidationError("current_quantity", "must not be negative")

    found = False
    result = []
    for item in items:
        if item.boq_item_id == boq_item_id:
            found = True
            upto_date = item.previous_quantity + quantity
            item = BillItem(
                boq_item_id=item.boq_item_id,
                item_no=item.item_no,
                description=item.description,
                unit=item.unit,
                contract_quantity=item.contract_quantity,
                rate=item.rate,
                previous_quantity=item.previous_quantity,
                current_quantity=quantity,
                upto_date_quantity=upto_date,
                previous_amount=item.previous_amount,
                current_amount=extend(quantity, item.rate, precision),
                upto_date_amount=extend(upto_date, item.rate, precision),
            )
        result.append(item)

    if not found:
        raise UnknownBoqItemError(boq_item_id, context="bill rows")

    logger.debug("ipc_row_recomputed", extra={
        "boq_item_id": boq_item_id,
        "current_quantity": str(quantity),
    })
    return tuple(result)


@traced_engine("ipc_summary", "1.0", fingerprint_fields=("form", "rates"))
def compute_summary(
    form: BillForm,
    rates: StatutoryRates,
    precision: Decimal = DEFAULT_AMOUNT_PRECISION,
) -> IPCSummary:
    """
    Derive the certificate summary.

    Purely arithmetic: a provisional sum larger than the gross, or a
    negative payable, is computed as-is.  ``check_certificate_policy``
    decides whether such a certificate may be saved.
    """
    def r(value: Decimal) -> Decimal:
        return round_amount(value, precision)

    gross = r(sum((item.current_amount for item in form.items), ZERO))
    cpa = r(form.cpa_amount)
    provisional_sum = r(form.provisional_sum)

    with_cpa = r(gross + cpa)
    without_ps = r(with_cpa - provisional_sum)
    vat = r(without_ps * rates.vat)
    total_with_vat = r(without_ps + vat + provisional_sum)

    retention = r(with_cpa * rates.retention)
    advance_income_tax = r(with_cpa * rates.advance_income_tax)
    contractor_dev_fund = r(with_cpa * rates.contractor_dev_fund)
    deductable_vat = r(vat * rates.deductible_vat_share)
    advance_payment = r(form.advance_payment_deduction)
    liquidated_damages = r(form.liquidated_damages)

    total_deductions = r(
        retention
        + advance_income_tax
        + contractor_dev_fund
        + deductable_vat
        + advance_payment
        + liquidated_damages
    )

    return IPCSummary(
        bill_amount_gross=gross,
        cpa_amount=cpa,
        bill_amount_with_cpa=with_cpa,
        bill_amount_without_ps=without_ps,
        vat_amount=vat,
        total_bill_with_vat=total_with_vat,
        retention_amount=retention,
        advance_income_tax=advance_income_tax,
        contractor_dev_fund=contractor_dev_fund,
        deductable_vat=deductable_vat,
        advance_payment_deduction=advance_payment,
        liquidated_damages=liquidated_damages,
        total_deductions=total_deductions,
        total_amount_payable=r(total_with_vat - total_deductions),
    )


def check_certificate_policy(summary: IPCSummary, allow_negative: bool = False) -> None:
    """
    Refuse certificates that are negative or whose provisional sum exceeds the work.

    Raises:
        ProvisionalSumExceedsGrossError: ``bill_amount_without_ps`` is negative.
        NegativeCertificateError: ``total_amount_payable`` is negative.
    """
    if allow_negative:
        return
    if summary.bill_amount_without_ps < ZERO:
        logger.warning("certificate_blocked_provisional_sum", extra={
            "bill_amount_with_cpa": str(summary.bill_amount_with_cpa),
            "bill_amount_without_ps": str(summary.bill_amount_without_ps),
        })
        raise ProvisionalSumExceedsGrossError(
            summary.bill_amount_with_cpa,
            summary.bill_amount_with_cpa - summary.bill_amount_without_ps,
        )
    if summary.total_amount_payable < ZERO:
        logger.warning("certificate_blocked_negative_payable", extra={
            "total_amount_payable": str(summary.total_amount_payable),
        })
        raise NegativeCertificateError(summary.total_amount_payable)


def summary_hash(
    items: Sequence[BillItem],
    summary: IPCSummary,
    rates: StatutoryRates,
) -> str:
    """Fingerprint of the frozen rows, summary and rates of a certificate."""
    return hash_bill_figures(
        [bill_item_to_dict(i) for i in items],
        summary_to_dict(summary),
        rates_to_dict(rates),
    )


def verify_bill_integrity(
    bill: ContractBill,
    precision: Decimal = DEFAULT_AMOUNT_PRECISION,
) -> IPCSummary:
    """
    Recompute a saved certificate from its stored fields and rate snapshot.

    Returns the recomputed summary, identical to ``bill.summary``.

    Raises:
        ImmutabilityViolationError: The stored summary or fingerprint no
            longer matches the stored rows.
    """
    recomputed = compute_summary(bill, bill.rates, precision)
    if recomputed != bill.summary:
        logger.error("bill_summary_mismatch", extra={
            "bill_id": bill.id,
            "bill_number": bill.bill_number,
            "stored_payable": str(bill.summary.total_amount_payable),
            "recomputed_payable": str(recomputed.total_amount_payable),
        })
        raise ImmutabilityViolationError(
            "ContractBill", bill.id, "stored summary differs from recomputation"
        )
    if summary_hash(bill.items, bill.summary, bill.rates) != bill.summary_hash:
        logger.error("bill_hash_mismatch", extra={
            "bill_id": bill.id,
            "bill_number": bill.bill_number,
        })
        raise ImmutabilityViolationError(
            "ContractBill", bill.id, "summary hash does not match stored figures"
        )
    return recomputed
