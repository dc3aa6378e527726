"""
BOQ register analytics.

Pure functions with deterministic behavior. No I/O.

Summarizes the financial position of a Bill of Quantities register and
flags items where approved scope reductions left less revised scope than
has already been certified as complete.

Usage:
    from ledger_engines.register import summarize_register, scope_warnings

    summary = summarize_register(project.register)
    summary.completion_percent      # completed value / revised value
    for w in scope_warnings(project.register):
        print(w.item_no, w.shortfall)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from ledger_kernel.domain.boq import BOQRegister
from ledger_kernel.domain.values import DEFAULT_AMOUNT_PRECISION, ZERO, percent_of, round_amount
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.register")


@dataclass(frozen=True)
class RegisterSummary:
    """Financial position of a BOQ register."""

    item_count: int
    original_value: Decimal
    variation_value: Decimal
    revised_value: Decimal
    completed_value: Decimal
    variation_percent: Decimal
    completion_percent: Decimal

    @property
    def remaining_value(self) -> Decimal:
        return self.revised_value - self.completed_value


@dataclass(frozen=True)
class ScopeWarning:
    """
    A BOQ item whose revised quantity is below its completed quantity.

    Raised as a warning, not an error: the variation that caused it is
    already approved and the completed work is already certified.
    """

    boq_item_id: str
    item_no: str
    revised_quantity: Decimal
    completed_quantity: Decimal

    @property
    def shortfall(self) -> Decimal:
        return self.completed_quantity - self.revised_quantity


def summarize_register(
    register: BOQRegister,
    precision: Decimal = DEFAULT_AMOUNT_PRECISION,
) -> RegisterSummary:
    """
    Value the register at contract, variation, revised and completed level.

    Percentages are relative to the original contract value (variation) and
    to the revised value (completion); both are zero when the base is zero.
    """
    original = sum((i.contract_amount for i in register), ZERO)
    variation = sum((i.variation_amount for i in register), ZERO)
    revised = sum((i.amount for i in register), ZERO)
    completed = sum((i.completed_amount for i in register), ZERO)

    return RegisterSummary(
        item_count=len(register),
        original_value=round_amount(original, precision),
        variation_value=round_amount(variation, precision),
        revised_value=round_amount(revised, precision),
        completed_value=round_amount(completed, precision),
        variation_percent=percent_of(variation, original),
        completion_percent=percent_of(completed, revised),
    )


def scope_warnings(
    register: BOQRegister,
    boq_item_ids: Iterable[str] | None = None,
) -> tuple[ScopeWarning, ...]:
    """
    Items whose revised scope is below the quantity already completed.

    Args:
        register: The register to inspect.
        boq_item_ids: Restrict the check to these items (e.g. the items a
            variation just touched).  ``None`` checks every item.
    """
    wanted = None if boq_item_ids is None else set(boq_item_ids)
    warnings = tuple(
        ScopeWarning(
            boq_item_id=item.id,
            item_no=item.item_no,
            revised_quantity=item.revised_quantity,
            completed_quantity=item.completed_quantity,
        )
        for item in register
        if (wanted is None or item.id in wanted) and item.is_over_completed
    )
    for w in warnings:
        logger.warning("scope_below_completed", extra={
            "boq_item_id": w.boq_item_id,
            "item_no": w.item_no,
            "revised_quantity": str(w.revised_quantity),
            "completed_quantity": str(w.completed_quantity),
        })
    return warnings
