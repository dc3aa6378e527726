"""
Billing Module (``ledger_modules.billing``).

Interim Payment Certificates and subcontractor bills: drafting from
measurement sheets and work logs, carry-forward of previous quantities,
statutory summaries, and the bill lifecycles.
"""

from ledger_modules.billing.config import BillingConfig
from ledger_modules.billing.service import BillingService
from ledger_modules.billing.workflows import IPC_WORKFLOW, SUBCONTRACTOR_BILL_WORKFLOW

__all__ = [
    "IPC_WORKFLOW",
    "SUBCONTRACTOR_BILL_WORKFLOW",
    "BillingConfig",
    "BillingService",
]
