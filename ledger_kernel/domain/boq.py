"""
Bill of Quantities register (``ledger_kernel.domain.boq``).

Responsibility
--------------
The authoritative list of contract line items and their cumulative
variation and completion state.

Architecture position
---------------------
**Kernel domain layer** -- frozen value objects, ZERO I/O.  The register is
owned by the ``ProjectLedger`` aggregate; the variation and billing engines
receive it as a snapshot and return a new register instead of mutating it.

Invariants enforced
-------------------
* ``revised_quantity == contract_quantity + variation_quantity`` for every
  item (checked at construction).
* ``completed_quantity`` never decreases (``with_completed_quantity``).
* Item ids are unique within a register.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Iterator

from ledger_kernel.domain.values import ZERO, to_decimal
from ledger_kernel.exceptions import QuantityRegressionError, UnknownBoqItemError

CATEGORY_GENERAL = "General"
CATEGORY_EXTRA_WORK = "Extra Work"


@dataclass(frozen=True)
class BOQItem:
    """One contract line item."""

    id: str
    item_no: str
    description: str
    unit: str
    contract_quantity: Decimal
    rate: Decimal
    variation_quantity: Decimal = ZERO
    revised_quantity: Decimal | None = None
    completed_quantity: Decimal = ZERO
    category: str = CATEGORY_GENERAL
    location: str = ""

    def __post_init__(self) -> None:
        for attr in ("contract_quantity", "rate", "variation_quantity", "completed_quantity"):
            object.__setattr__(self, attr, to_decimal(getattr(self, attr), attr))

        expected = self.contract_quantity + self.variation_quantity
        if self.revised_quantity is None:
            object.__setattr__(self, "revised_quantity", expected)
        else:
            revised = to_decimal(self.revised_quantity, "revised_quantity")
            if revised != expected:
                raise ValueError(
                    f"BOQ item {self.item_no}: revised_quantity {revised} != "
                    f"contract {self.contract_quantity} + variation {self.variation_quantity}"
                )
            object.__setattr__(self, "revised_quantity", revised)

        if self.completed_quantity < 0:
            raise ValueError(f"BOQ item {self.item_no}: completed_quantity must be non-negative")

    @property
    def amount(self) -> Decimal:
        """Revised value of the line (revised quantity x rate)."""
        return self.revised_quantity * self.rate

    @property
    def contract_amount(self) -> Decimal:
        return self.contract_quantity * self.rate

    @property
    def variation_amount(self) -> Decimal:
        return self.variation_quantity * self.rate

    @property
    def completed_amount(self) -> Decimal:
        return self.completed_quantity * self.rate

    @property
    def is_over_completed(self) -> bool:
        """True when scope reductions left less revised scope than was completed."""
        return self.revised_quantity < self.completed_quantity

    def with_variation(self, quantity_delta: Decimal) -> BOQItem:
        """Apply an approved variation delta; revised quantity follows."""
        variation = self.variation_quantity + quantity_delta
        return replace(
            self,
            variation_quantity=variation,
            revised_quantity=self.contract_quantity + variation,
        )

    def with_completed_quantity(self, quantity: Decimal) -> BOQItem:
        """Advance the cumulative completed quantity (never backwards)."""
        quantity = to_decimal(quantity, "completed_quantity")
        if quantity < self.completed_quantity:
            raise QuantityRegressionError(self.id, self.completed_quantity, quantity)
        return replace(self, completed_quantity=quantity)


@dataclass(frozen=True)
class BOQRegister:
    """
    Ordered, immutable collection of BOQ items with indexed lookup.

    Every change produces a new register.
    """

    items: tuple[BOQItem, ...] = ()
    _index: dict[str, int] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))
        index: dict[str, int] = {}
        for pos, item in enumerate(self.items):
            if item.id in index:
                raise ValueError(f"Duplicate BOQ item id: {item.id}")
            index[item.id] = pos
        object.__setattr__(self, "_index", index)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[BOQItem]:
        return iter(self.items)

    def __contains__(self, boq_item_id: object) -> bool:
        return boq_item_id in self._index

    def find(self, boq_item_id: str) -> BOQItem | None:
        pos = self._index.get(boq_item_id)
        return None if pos is None else self.items[pos]

    def get(self, boq_item_id: str, context: str = "") -> BOQItem:
        """Look up an item, raising ``UnknownBoqItemError`` if absent."""
        item = self.find(boq_item_id)
        if item is None:
            raise UnknownBoqItemError(boq_item_id, context)
        return item

    def replace_items(self, updated: dict[str, BOQItem]) -> BOQRegister:
        """Return a register with the given items swapped in by id."""
        for boq_item_id in updated:
            if boq_item_id not in self._index:
                raise UnknownBoqItemError(boq_item_id)
        return BOQRegister(tuple(updated.get(i.id, i) for i in self.items))

    def append(self, *new_items: BOQItem) -> BOQRegister:
        return BOQRegister(self.items + tuple(new_items))
