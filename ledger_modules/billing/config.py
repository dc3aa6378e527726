"""
Billing Configuration Schema.

Statutory rates, certificate policy and rounding for IPCs and
subcontractor bills.  Values normally come from the active ledger
configuration (``BillingConfig.from_configuration``).
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Self

from ledger_config.schema import LedgerConfiguration
from ledger_kernel.domain.billing import StatutoryRates
from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.billing.config")


@dataclass
class BillingConfig:
    """
    Configuration schema for the billing module.

    Defaults are the standard contract deductions.  Override at
    instantiation for a project with different terms:

        config = BillingConfig(
            statutory_rates=StatutoryRates(vat=Decimal("0.15")),
            allow_negative_certificate=True,
        )
    """

    statutory_rates: StatutoryRates = field(default_factory=StatutoryRates)

    # Certificate policy
    allow_negative_certificate: bool = False

    # Rounding
    amount_precision: Decimal = Decimal("0.01")

    # Subcontractor bills
    default_subcontractor_retention_percent: Decimal = Decimal("5")

    def __post_init__(self) -> None:
        if self.amount_precision <= 0:
            raise ValueError("amount_precision must be positive")

        if not (0 <= self.default_subcontractor_retention_percent <= 100):
            raise ValueError(
                "default_subcontractor_retention_percent must be between 0 and 100, "
                f"got {self.default_subcontractor_retention_percent}"
            )

        logger.info(
            "billing_config_initialized",
            extra={
                "vat": str(self.statutory_rates.vat),
                "retention": str(self.statutory_rates.retention),
                "allow_negative_certificate": self.allow_negative_certificate,
                "amount_precision": str(self.amount_precision),
                "default_subcontractor_retention_percent": str(
                    self.default_subcontractor_retention_percent
                ),
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standard statutory deductions."""
        logger.info("billing_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g. project settings)."""
        logger.info(
            "billing_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        data = dict(data)
        rates = data.get("statutory_rates")
        if isinstance(rates, dict):
            data["statutory_rates"] = StatutoryRates(**rates)
        for key in ("amount_precision", "default_subcontractor_retention_percent"):
            if key in data:
                data[key] = Decimal(str(data[key]))
        return cls(**data)

    @classmethod
    def from_configuration(cls, config: LedgerConfiguration) -> Self:
        """Create config from the active ledger configuration."""
        policy = config.billing_policy
        return cls(
            statutory_rates=config.statutory_rates,
            allow_negative_certificate=policy.allow_negative_certificate,
            amount_precision=policy.amount_precision,
            default_subcontractor_retention_percent=policy.default_subcontractor_retention_percent,
        )
