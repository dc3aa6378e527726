"""
Variation order records (``ledger_kernel.domain.variation``).

Responsibility
--------------
Frozen value objects for staged contract-scope changes: a
``VariationOrder`` and its ordered ``VariationItem`` deltas.

Architecture position
---------------------
**Kernel domain layer** -- pure data, ZERO I/O.  Lifecycle rules live in
``ledger_modules.variations``; the register mutation in
``ledger_engines.variation``.

Invariants enforced
-------------------
* ``quantity_delta`` is never zero.
* An item either references a BOQ item or is flagged ``is_new_item``.
* ``total_impact`` is always derived from the staged items.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from ledger_kernel.domain.values import ZERO, to_decimal
from ledger_kernel.exceptions import ValidationError, VariationItemNotFoundError


class VariationStatus(str, Enum):
    """Variation order lifecycle states."""

    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    APPROVED = "Approved"
    REJECTED = "Rejected"


@dataclass(frozen=True)
class VariationItem:
    """A staged change against one BOQ line, or a new-scope line."""

    id: str
    description: str
    unit: str
    quantity_delta: Decimal
    rate: Decimal
    boq_item_id: str | None = None
    is_new_item: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity_delta", to_decimal(self.quantity_delta, "quantity_delta"))
        object.__setattr__(self, "rate", to_decimal(self.rate, "rate"))
        if self.quantity_delta == ZERO:
            raise ValidationError("quantity_delta", "must be non-zero")
        if self.rate < ZERO:
            raise ValidationError("rate", "must be non-negative")
        if self.is_new_item:
            if not self.description or not self.description.strip():
                raise ValidationError("description", "new-scope items need a description")
            if self.boq_item_id is not None:
                raise ValidationError("boq_item_id", "new-scope items cannot reference a BOQ item")
        elif not self.boq_item_id:
            raise ValidationError("boq_item_id", "required unless is_new_item is set")

    @property
    def impact(self) -> Decimal:
        return self.quantity_delta * self.rate


@dataclass(frozen=True)
class VariationOrder:
    """A variation order and its staged items."""

    id: str
    vo_number: str
    title: str
    reason: str
    date: date
    items: tuple[VariationItem, ...] = ()
    status: VariationStatus = VariationStatus.DRAFT
    approved_at: datetime | None = None
    approved_by: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "status", VariationStatus(self.status))

    @property
    def total_impact(self) -> Decimal:
        """Sum of delta x rate across staged items, recomputed on every read."""
        return sum((i.impact for i in self.items), ZERO)

    @property
    def is_draft(self) -> bool:
        return self.status == VariationStatus.DRAFT

    def with_item(self, item: VariationItem) -> VariationOrder:
        if any(i.id == item.id for i in self.items):
            raise ValidationError("item.id", f"duplicate variation item id {item.id}")
        return replace(self, items=self.items + (item,))

    def without_item(self, item_id: str) -> VariationOrder:
        remaining = tuple(i for i in self.items if i.id != item_id)
        if len(remaining) == len(self.items):
            raise VariationItemNotFoundError(self.id, item_id)
        return replace(self, items=remaining)

    def with_status(self, status: VariationStatus) -> VariationOrder:
        return replace(self, status=status)
