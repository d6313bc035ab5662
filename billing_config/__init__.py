"""
billing_config -- single public entrypoint for billing engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``BillingEngineConfig``:
    the fallback electric rate the cost allocator uses when no bill
    supplies a rate, the currency symbol for rendered breakdowns, the
    invoice number policy and the role policy.

Architecture position:
    Configuration -- YAML-driven, validated at load.  Sits above
    ``billing_kernel`` and beside ``billing_engines``; the kernel MUST
    NEVER import from ``billing_config``.

Invariants enforced:
    - Single entrypoint: runtime config flows through ``get_active_config()``.
    - Identical YAML always produces the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with the requested name.
    - ``ConfigurationError`` -- validation failures, all listed.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``BILLING_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying each invoice run to the configuration it used.
"""

from __future__ import annotations

import logging
from pathlib import Path

from billing_config.loader import compute_checksum, load_config_file, parse_config
from billing_config.schema import (
    BillingEngineConfig,
    InvoiceNumberConfig,
    RolePolicyConfig,
)

_logger = logging.getLogger("billing_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(
    config_name: str = "default",
    config_dir: Path | None = None,
) -> BillingEngineConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_name: Name of the set, i.e. ``<config_dir>/<config_name>.yaml``.
        config_dir: Override path to the configuration sets directory.
            Defaults to billing_config/sets/.

    Raises:
        FileNotFoundError: If the named set does not exist.
        ConfigurationError: If the set fails validation.
    """
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{config_name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"No configuration set {config_name!r} in {sets_dir}")

    config = load_config_file(path)

    _logger.info(
        "BILLING_CONFIG_TRACE",
        extra={
            "trace_type": "BILLING_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "invoice_number_mode": config.invoice_number.mode,
        },
    )
    return config


__all__ = [
    "BillingEngineConfig",
    "InvoiceNumberConfig",
    "RolePolicyConfig",
    "compute_checksum",
    "get_active_config",
    "parse_config",
]
