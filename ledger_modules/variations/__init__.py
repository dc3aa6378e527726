"""
Variations Module (``ledger_modules.variations``).

Variation order lifecycle (draft, stage, submit, approve/reject, revise,
delete) over a project store.  The BOQ register mutation on approval is
delegated to ``ledger_engines.variation``.
"""

from ledger_modules.variations.service import VariationApprovalResult, VariationService
from ledger_modules.variations.workflows import (
    VARIATION_ORDER_WORKFLOW,
    build_variation_workflow,
)

__all__ = [
    "VARIATION_ORDER_WORKFLOW",
    "VariationApprovalResult",
    "VariationService",
    "build_variation_workflow",
]
