"""
Pure domain layer.

Frozen records and value helpers with NO dependencies on the ORM, the
database, the wall clock, or any I/O.
"""

from ledger_kernel.domain.billing import (
    BillItem,
    ContractBill,
    IPCDraft,
    IPCStatus,
    IPCSummary,
    MeasurementEntry,
    MeasurementSheet,
    StatutoryRates,
    SubcontractorBill,
    SubcontractorBillDraft,
    SubcontractorBillingSummary,
    SubcontractorBillStatus,
    SubcontractorRate,
    SubcontractorSummary,
    WorkLogEntry,
)
from ledger_kernel.domain.boq import BOQItem, BOQRegister
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.project import ProjectLedger
from ledger_kernel.domain.variation import VariationItem, VariationOrder, VariationStatus
from ledger_kernel.domain.workflow import Guard, Transition, TransitionResult, Workflow

__all__ = [
    "BOQItem",
    "BOQRegister",
    "BillItem",
    "Clock",
    "ContractBill",
    "DeterministicClock",
    "Guard",
    "IPCDraft",
    "IPCStatus",
    "IPCSummary",
    "MeasurementEntry",
    "MeasurementSheet",
    "ProjectLedger",
    "StatutoryRates",
    "SubcontractorBill",
    "SubcontractorBillDraft",
    "SubcontractorBillingSummary",
    "SubcontractorBillStatus",
    "SubcontractorRate",
    "SubcontractorSummary",
    "SystemClock",
    "Transition",
    "TransitionResult",
    "VariationItem",
    "VariationOrder",
    "VariationStatus",
    "WorkLogEntry",
    "Workflow",
]
