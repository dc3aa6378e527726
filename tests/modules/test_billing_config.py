"""
Tests for BillingConfig (ledger_modules/billing/config.py).
"""

from decimal import Decimal

import pytest

from ledger_config.schema import BillingPolicyDef, LedgerConfiguration
from ledger_kernel.domain.billing import StatutoryRates
from ledger_modules.billing.config import BillingConfig


class TestBillingConfig:

    def test_defaults(self):
        config = BillingConfig.with_defaults()

        assert config.statutory_rates.vat == Decimal("0.13")
        assert config.allow_negative_certificate is False
        assert config.default_subcontractor_retention_percent == Decimal("5")

    def test_from_dict(self):
        config = BillingConfig.from_dict({
            "statutory_rates": {"vat": "0.15"},
            "amount_precision": "1",
            "default_subcontractor_retention_percent": 10,
        })

        assert config.statutory_rates.vat == Decimal("0.15")
        assert config.amount_precision == Decimal("1")
        assert config.default_subcontractor_retention_percent == Decimal("10")

    def test_from_configuration(self):
        ledger_config = LedgerConfiguration(
            config_id="x", version=2, checksum="c",
            statutory_rates=StatutoryRates(retention=Decimal("0.10")),
            billing_policy=BillingPolicyDef(allow_negative_certificate=True),
        )

        config = BillingConfig.from_configuration(ledger_config)

        assert config.statutory_rates.retention == Decimal("0.10")
        assert config.allow_negative_certificate is True

    @pytest.mark.parametrize("kwargs", [
        {"amount_precision": Decimal("0")},
        {"default_subcontractor_retention_percent": Decimal("101")},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            BillingConfig(**kwargs)
