"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``get_active_config()`` is the only way services obtain configuration.
    No other component reads configuration files directly.

Architecture position:
    Configuration -- sits above ``ledger_kernel`` and below
    ``ledger_services`` / ``ledger_modules``.  The kernel never imports
    from ``ledger_config``.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ConfigurationError`` -- a value is out of range or unparseable.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``LEDGER_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying each certificate to the configuration it was issued
    under.
"""

from __future__ import annotations

from pathlib import Path

from ledger_config.loader import load_yaml_file, parse_configuration
from ledger_config.schema import ApprovalsDef, BillingPolicyDef, LedgerConfiguration
from ledger_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | str | None = None) -> LedgerConfiguration:
    """
    Load and validate the configuration in force.

    Args:
        config_path: YAML file to load.  Defaults to the packaged
            ``defaults.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If any value is invalid.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    config = parse_configuration(load_yaml_file(path))

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "allow_negative_certificate": config.billing_policy.allow_negative_certificate,
        },
    )
    return config


__all__ = [
    "ApprovalsDef",
    "BillingPolicyDef",
    "DEFAULT_CONFIG_PATH",
    "LedgerConfiguration",
    "get_active_config",
]
