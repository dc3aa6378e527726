"""
Ledger Kernel

Core of the construction contract ledger:
- Bill of Quantities register with cumulative variation and completion state
- Variation orders staged against the register
- Interim Payment Certificates and subcontractor bills
- Deterministic Decimal arithmetic and structured logging
"""

__version__ = "0.1.0"
