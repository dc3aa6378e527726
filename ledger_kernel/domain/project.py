"""
Project ledger aggregate (``ledger_kernel.domain.project``).

Responsibility
--------------
Owns the BOQ register together with the append-only variation order and
bill histories of one project, plus the document sequence counters and the
optimistic-concurrency revision.

Architecture position
---------------------
**Kernel domain layer** -- frozen aggregate root, ZERO I/O.  Services load
it from a project store, derive a new aggregate, and save it back as a
whole-object replacement.

Invariants enforced
-------------------
* The register is the single shared mutable resource; it only changes by
  producing a new aggregate (``with_register``).
* Sequence counters only move forward, so document numbers are never
  reused even after a draft is deleted.
* ``revision`` is owned by the project store; services never bump it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from ledger_kernel.domain.billing import ContractBill, SubcontractorBill
from ledger_kernel.domain.boq import BOQRegister
from ledger_kernel.domain.variation import VariationOrder
from ledger_kernel.exceptions import BillNotFoundError, VariationNotFoundError


@dataclass(frozen=True)
class ProjectLedger:
    """Aggregate root for one project's contract ledger."""

    project_id: str
    register: BOQRegister
    variation_orders: tuple[VariationOrder, ...] = ()
    contract_bills: tuple[ContractBill, ...] = ()
    subcontractor_bills: tuple[SubcontractorBill, ...] = ()
    vo_sequence: int = 0
    ipc_sequence: int = 0
    scb_sequence: int = 0
    revision: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "variation_orders", tuple(self.variation_orders))
        object.__setattr__(self, "contract_bills", tuple(self.contract_bills))
        object.__setattr__(self, "subcontractor_bills", tuple(self.subcontractor_bills))

    # -- variation orders ---------------------------------------------------

    def get_variation(self, variation_id: str) -> VariationOrder:
        for vo in self.variation_orders:
            if vo.id == variation_id:
                return vo
        raise VariationNotFoundError(variation_id)

    def add_variation(self, vo: VariationOrder) -> ProjectLedger:
        return replace(
            self,
            variation_orders=self.variation_orders + (vo,),
            vo_sequence=self.vo_sequence + 1,
        )

    def replace_variation(self, vo: VariationOrder) -> ProjectLedger:
        self.get_variation(vo.id)
        return replace(
            self,
            variation_orders=tuple(vo if v.id == vo.id else v for v in self.variation_orders),
        )

    def remove_variation(self, variation_id: str) -> ProjectLedger:
        self.get_variation(variation_id)
        return replace(
            self,
            variation_orders=tuple(v for v in self.variation_orders if v.id != variation_id),
        )

    # -- register -------------------------------------------------------------

    def with_register(self, register: BOQRegister) -> ProjectLedger:
        return replace(self, register=register)

    # -- contract bills -------------------------------------------------------

    def get_contract_bill(self, bill_id: str) -> ContractBill:
        for bill in self.contract_bills:
            if bill.id == bill_id:
                return bill
        raise BillNotFoundError(bill_id)

    def add_contract_bill(self, bill: ContractBill) -> ProjectLedger:
        return replace(
            self,
            contract_bills=self.contract_bills + (bill,),
            ipc_sequence=max(self.ipc_sequence, bill.order_of_bill),
        )

    def replace_contract_bill(self, bill: ContractBill) -> ProjectLedger:
        self.get_contract_bill(bill.id)
        return replace(
            self,
            contract_bills=tuple(bill if b.id == bill.id else b for b in self.contract_bills),
        )

    # -- subcontractor bills --------------------------------------------------

    def get_subcontractor_bill(self, bill_id: str) -> SubcontractorBill:
        for bill in self.subcontractor_bills:
            if bill.id == bill_id:
                return bill
        raise BillNotFoundError(bill_id)

    def bills_of_subcontractor(self, subcontractor_id: str) -> tuple[SubcontractorBill, ...]:
        return tuple(b for b in self.subcontractor_bills if b.subcontractor_id == subcontractor_id)

    def add_subcontractor_bill(self, bill: SubcontractorBill) -> ProjectLedger:
        return replace(
            self,
            subcontractor_bills=self.subcontractor_bills + (bill,),
            scb_sequence=max(self.scb_sequence, bill.order_of_bill),
        )

    def replace_subcontractor_bill(self, bill: SubcontractorBill) -> ProjectLedger:
        self.get_subcontractor_bill(bill.id)
        return replace(
            self,
            subcontractor_bills=tuple(
                bill if b.id == bill.id else b for b in self.subcontractor_bills
            ),
        )
