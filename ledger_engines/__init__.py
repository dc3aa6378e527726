"""
Module: ledger_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines.  This is
    the canonical import surface for ledger_modules and ledger_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel (domain, exceptions, logging, utils).
    MUST NOT import ledger_services or ledger_modules.

Invariants enforced:
    - Purity: engines never read the clock; dates arrive as parameters.
    - Decimal-only arithmetic, rounded explicitly to the amount precision.
    - Determinism: identical inputs always produce identical outputs.
    - Nothing is mutated in place: registers and bill rows are returned new.
"""

from ledger_engines.carry_forward import (
    SourceQuantities,
    advance_completed_quantities,
    aggregate_measurements,
    aggregate_work_logs,
    check_duplicate_sources,
    check_not_stale,
    cumulative_quantities,
    latest_bill,
    latest_subcontractor_bill,
    previous_quantities,
    verify_monotonic,
)
from ledger_engines.ipc import (
    check_certificate_policy,
    compute_summary,
    generate_items_from_sources,
    make_bill_item,
    recompute_on_edit,
    summary_hash,
    verify_bill_integrity,
)
from ledger_engines.register import (
    RegisterSummary,
    ScopeWarning,
    scope_warnings,
    summarize_register,
)
from ledger_engines.subcontractor import (
    compute_subcontractor_summary,
    generate_subcontractor_items,
    summarize_subcontractor_bills,
    validate_retention_percent,
)
from ledger_engines.variation import VariationApplication, apply_variation

__all__ = [
    "RegisterSummary",
    "ScopeWarning",
    "SourceQuantities",
    "VariationApplication",
    "advance_completed_quantities",
    "aggregate_measurements",
    "aggregate_work_logs",
    "apply_variation",
    "check_certificate_policy",
    "check_duplicate_sources",
    "check_not_stale",
    "compute_subcontractor_summary",
    "compute_summary",
    "cumulative_quantities",
    "generate_items_from_sources",
    "generate_subcontractor_items",
    "latest_bill",
    "latest_subcontractor_bill",
    "make_bill_item",
    "previous_quantities",
    "recompute_on_edit",
    "scope_warnings",
    "summarize_register",
    "summarize_subcontractor_bills",
    "summary_hash",
    "validate_retention_percent",
]
