"""
Variation approval engine.

Pure functions with deterministic behavior. No I/O.

Applies the staged items of an approved Variation Order to a BOQ register
and returns a NEW register.  Approval is all-or-nothing: every item is
validated against the register before any line changes, so a single bad
reference leaves the caller's register exactly as it was.

Rules:
- Existing item:  variation_quantity += delta; revised = contract + variation.
- New-scope item: appended with contract_quantity 0, variation and revised
  quantity equal to the delta, item number ``NS-{n}`` where n is the
  register length after the append, and category "Extra Work".

Usage:
    from ledger_engines.variation import apply_variation

    result = apply_variation(project.register, vo)
    project = project.with_register(result.register)
    for warning in result.warnings:
        ...
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from ledger_engines.register import ScopeWarning, scope_warnings
from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.boq import CATEGORY_EXTRA_WORK, BOQItem, BOQRegister
from ledger_kernel.domain.values import ZERO
from ledger_kernel.domain.variation import VariationItem, VariationOrder
from ledger_kernel.exceptions import UnknownBoqItemError, ValidationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.variation")

NEW_SCOPE_PREFIX = "NS-"


@dataclass(frozen=True)
class VariationApplication:
    """Outcome of applying a variation order to a register."""

    register: BOQRegister
    updated_item_ids: tuple[str, ...]
    added_item_ids: tuple[str, ...]
    warnings: tuple[ScopeWarning, ...] = ()


def new_scope_item_id(vo: VariationOrder, item: VariationItem) -> str:
    """Deterministic id for a BOQ line created by a variation item."""
    return f"{vo.id}-{item.id}"


def _validate(register: BOQRegister, vo: VariationOrder) -> None:
    """Reject the whole order before anything changes."""
    running: dict[str, BOQItem] = {}
    for item in vo.items:
        if item.is_new_item:
            if item.quantity_delta < ZERO:
                raise ValidationError(
                    "quantity_delta",
                    f"new-scope item {item.id} must add a positive quantity",
                )
            continue
        boq_item = running.get(item.boq_item_id) or register.get(
            item.boq_item_id, context=f"variation {vo.vo_number}"
        )
        boq_item = boq_item.with_variation(item.quantity_delta)
        if boq_item.revised_quantity < ZERO:
            raise ValidationError(
                "quantity_delta",
                f"item {boq_item.item_no} revised quantity would become {boq_item.revised_quantity}",
            )
        running[boq_item.id] = boq_item


@traced_engine("variation_approval", "1.0", fingerprint_fields=("vo",))
def apply_variation(register: BOQRegister, vo: VariationOrder) -> VariationApplication:
    """
    Apply every staged item of ``vo`` to ``register``.

    Raises:
        UnknownBoqItemError: An item references a BOQ line not in the register.
        ValidationError: A reduction would take a revised quantity below zero.
    """
    t0 = time.monotonic()
    logger.info("variation_apply_started", extra={
        "variation_id": vo.id,
        "vo_number": vo.vo_number,
        "item_count": len(vo.items),
    })

    try:
        _validate(register, vo)
    except (UnknownBoqItemError, ValidationError):
        logger.warning("variation_apply_rejected", extra={
            "variation_id": vo.id,
            "vo_number": vo.vo_number,
        }, exc_info=True)
        raise

    updated: dict[str, BOQItem] = {}
    added: list[BOQItem] = []
    for item in vo.items:
        if item.is_new_item:
            added.append(BOQItem(
                id=new_scope_item_id(vo, item),
                item_no=f"{NEW_SCOPE_PREFIX}{len(register) + len(added) + 1}",
                description=item.description,
                unit=item.unit,
                contract_quantity=ZERO,
                rate=item.rate,
                variation_quantity=item.quantity_delta,
                category=CATEGORY_EXTRA_WORK,
            ))
        else:
            current = updated.get(item.boq_item_id) or register.get(item.boq_item_id)
            updated[item.boq_item_id] = current.with_variation(item.quantity_delta)

    new_register = register.replace_items(updated).append(*added)
    warnings = scope_warnings(new_register, updated.keys())

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.info("variation_apply_completed", extra={
        "variation_id": vo.id,
        "vo_number": vo.vo_number,
        "updated_items": len(updated),
        "added_items": len(added),
        "total_impact": str(vo.total_impact),
        "warning_count": len(warnings),
        "duration_ms": duration_ms,
    })

    return VariationApplication(
        register=new_register,
        updated_item_ids=tuple(updated),
        added_item_ids=tuple(i.id for i in added),
        warnings=warnings,
    )
