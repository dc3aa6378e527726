"""
Tests for configuration loading (ledger_config).
"""

from decimal import Decimal

import pytest
import yaml

from ledger_config import DEFAULT_CONFIG_PATH, get_active_config
from ledger_config.loader import compute_checksum, load_yaml_file, parse_configuration, parse_decimal
from ledger_kernel.domain.billing import StatutoryRates
from ledger_kernel.exceptions import ConfigurationError


def _write(tmp_path, data):
    path = tmp_path / "ledger.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestPackagedDefaults:

    def test_defaults_match_standard_deductions(self):
        config = get_active_config()

        assert config.config_id == "default"
        assert config.version == 1
        assert config.statutory_rates == StatutoryRates()
        assert config.billing_policy.allow_negative_certificate is False
        assert config.billing_policy.amount_precision == Decimal("0.01")
        assert config.billing_policy.default_subcontractor_retention_percent == Decimal("5")
        assert config.approvals.variation_approver_roles == ("admin", "project_manager")

    def test_trace_logged(self, captured_logs):
        config = get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "LEDGER_CONFIG_TRACE"]
        assert traces[0]["checksum"] == config.checksum
        assert traces[0]["config_id"] == "default"

    def test_checksum_is_stable(self):
        data = load_yaml_file(DEFAULT_CONFIG_PATH)

        assert compute_checksum(data) == compute_checksum(dict(reversed(list(data.items()))))
        assert get_active_config().checksum == compute_checksum(data)


class TestOverrides:

    def test_partial_file_keeps_defaults(self, tmp_path):
        path = _write(tmp_path, {
            "config_id": "site-b",
            "statutory_rates": {"vat": "0.15"},
            "billing_policy": {"allow_negative_certificate": True},
        })

        config = get_active_config(path)

        assert config.config_id == "site-b"
        assert config.statutory_rates.vat == Decimal("0.15")
        assert config.statutory_rates.retention == Decimal("0.05")
        assert config.billing_policy.allow_negative_certificate is True

    def test_unquoted_floats_parse_exactly(self):
        assert parse_decimal(0.13, "vat") == Decimal("0.13")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestInvalidValues:

    @pytest.mark.parametrize("data,key", [
        ({"billing_policy": {"amount_precision": "0.05"}}, "amount_precision"),
        ({"billing_policy": {"default_subcontractor_retention_percent": "150"}}, "retention_percent"),
        ({"billing_policy": {"allow_negative_certificate": "yes"}}, "allow_negative_certificate"),
        ({"statutory_rates": {"vat": "1.5"}}, "statutory_rates"),
        ({"statutory_rates": {"vat": "abc"}}, "statutory_rates.vat"),
        ({"approvals": {"variation_approver_roles": []}}, "variation_approver_roles"),
        ({"approvals": "admin"}, "approvals"),
    ])
    def test_rejected(self, data, key):
        with pytest.raises(ConfigurationError, match=key) as exc_info:
            parse_configuration(data)

        assert exc_info.value.code == "CONFIGURATION_ERROR"
