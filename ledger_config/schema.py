"""
LedgerConfiguration schema.

Typed, frozen form of a ledger configuration file.  YAML is parsed into
these types by ``ledger_config.loader``; services receive them through
``ledger_config.get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ledger_kernel.domain.billing import StatutoryRates


@dataclass(frozen=True)
class BillingPolicyDef:
    """Certificate policy and arithmetic precision."""

    allow_negative_certificate: bool = False
    amount_precision: Decimal = Decimal("0.01")
    default_subcontractor_retention_percent: Decimal = Decimal("5")


@dataclass(frozen=True)
class ApprovalsDef:
    """Roles allowed to approve variation orders."""

    variation_approver_roles: tuple[str, ...] = ("admin", "project_manager")


@dataclass(frozen=True)
class LedgerConfiguration:
    """
    Configuration in force for a ledger.

    Attributes:
        config_id: Identifier of the configuration (e.g. "default").
        version: Configuration version number.
        checksum: SHA-256 of the canonical source data.
        statutory_rates: VAT and deduction percentages applied to IPCs.
        billing_policy: Negative-certificate policy, precision, retention default.
        approvals: Variation approver roles.
    """

    config_id: str
    version: int
    checksum: str
    statutory_rates: StatutoryRates = field(default_factory=StatutoryRates)
    billing_policy: BillingPolicyDef = field(default_factory=BillingPolicyDef)
    approvals: ApprovalsDef = field(default_factory=ApprovalsDef)
