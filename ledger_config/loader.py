"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``ledger_config.schema`` dataclasses.  The single public entry point for
runtime config is ``ledger_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Invalid values raise ``ConfigurationError`` naming the offending key;
  optional sections fall back to the documented defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range or unparseable values -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import ApprovalsDef, BillingPolicyDef, LedgerConfiguration
from ledger_kernel.domain.billing import StatutoryRates
from ledger_kernel.domain.values import to_decimal
from ledger_kernel.exceptions import ConfigurationError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, key: str) -> Decimal:
    """
    Parse a Decimal from YAML.

    Unquoted YAML numbers arrive as floats; they are converted through
    their shortest ``str`` form so ``0.13`` stays exactly ``0.13``.
    """
    if isinstance(value, float):
        value = str(value)
    try:
        return to_decimal(value, key)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(key, str(e)) from e


def parse_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ConfigurationError(key, f"expected true/false, got {value!r}")


def parse_statutory_rates(data: dict[str, Any]) -> StatutoryRates:
    """Parse the ``statutory_rates`` section; missing rates keep their defaults."""
    defaults = StatutoryRates()
    kwargs = {}
    for name in ("vat", "retention", "advance_income_tax", "contractor_dev_fund", "deductible_vat_share"):
        key = f"statutory_rates.{name}"
        kwargs[name] = parse_decimal(data.get(name, getattr(defaults, name)), key)
    try:
        return StatutoryRates(**kwargs)
    except ValueError as e:
        raise ConfigurationError("statutory_rates", str(e)) from e


def parse_billing_policy(data: dict[str, Any]) -> BillingPolicyDef:
    defaults = BillingPolicyDef()
    precision = parse_decimal(
        data.get("amount_precision", defaults.amount_precision),
        "billing_policy.amount_precision",
    )
    if precision <= 0 or precision.as_tuple().digits != (1,):
        raise ConfigurationError(
            "billing_policy.amount_precision",
            f"must be a power of ten such as 0.01, got {precision}",
        )
    retention = parse_decimal(
        data.get(
            "default_subcontractor_retention_percent",
            defaults.default_subcontractor_retention_percent,
        ),
        "billing_policy.default_subcontractor_retention_percent",
    )
    if not (0 <= retention <= 100):
        raise ConfigurationError(
            "billing_policy.default_subcontractor_retention_percent",
            f"must be between 0 and 100, got {retention}",
        )
    return BillingPolicyDef(
        allow_negative_certificate=parse_bool(
            data.get("allow_negative_certificate", defaults.allow_negative_certificate),
            "billing_policy.allow_negative_certificate",
        ),
        amount_precision=precision,
        default_subcontractor_retention_percent=retention,
    )


def parse_approvals(data: dict[str, Any]) -> ApprovalsDef:
    roles = data.get("variation_approver_roles", ApprovalsDef().variation_approver_roles)
    if isinstance(roles, str) or not roles:
        raise ConfigurationError(
            "approvals.variation_approver_roles", "must be a non-empty list of roles"
        )
    return ApprovalsDef(variation_approver_roles=tuple(str(r) for r in roles))


def parse_configuration(data: dict[str, Any]) -> LedgerConfiguration:
    """Parse a whole configuration document."""
    for section in ("statutory_rates", "billing_policy", "approvals"):
        if not isinstance(data.get(section, {}), dict):
            raise ConfigurationError(section, "must be a mapping")
    return LedgerConfiguration(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        statutory_rates=parse_statutory_rates(data.get("statutory_rates", {})),
        billing_policy=parse_billing_policy(data.get("billing_policy", {})),
        approvals=parse_approvals(data.get("approvals", {})),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
