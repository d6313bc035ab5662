"""
Configuration Loader (``billing_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into a validated
``BillingEngineConfig``.  The single public entry point for runtime config
is ``billing_config.get_active_config()``; this module is its machinery.

Invariants enforced
-------------------
* Decimal values are read from strings or integers, never from YAML
  floats, so ``0.1479`` is exactly ``Decimal("0.1479")``.
* Every problem in a set is collected and reported at once in one
  ``ConfigurationError``.
* ``compute_checksum`` is a deterministic SHA-256 over canonical JSON.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ConfigurationError`` listing every error.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import (
    INVOICE_NUMBER_MODES,
    BillingEngineConfig,
    InvoiceNumberConfig,
    RolePolicyConfig,
)
from billing_kernel.domain.invoice import ActorRole
from billing_kernel.exceptions import ConfigurationError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load one YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _parse_decimal(value: Any, key: str, errors: list[str]) -> Decimal | None:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        errors.append(f"{key}: expected a quoted decimal string, got {value!r}")
        return None
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        errors.append(f"{key}: not a decimal: {value!r}")
        return None
    if not result.is_finite() or result < 0:
        errors.append(f"{key}: must be a finite non-negative decimal, got {value!r}")
        return None
    return result


def _parse_int(
    data: dict[str, Any], key: str, default: int, minimum: int, errors: list[str],
    prefix: str,
) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        errors.append(f"{prefix}{key}: expected an integer, got {value!r}")
        return default
    if value < minimum:
        errors.append(f"{prefix}{key}: must be >= {minimum}, got {value}")
        return default
    return value


def parse_invoice_number(data: dict[str, Any], errors: list[str]) -> InvoiceNumberConfig:
    prefix = "invoice_number."
    mode = data.get("mode", "token")
    if mode not in INVOICE_NUMBER_MODES:
        errors.append(f"{prefix}mode: must be one of {INVOICE_NUMBER_MODES}, got {mode!r}")
        mode = "token"
    return InvoiceNumberConfig(
        mode=mode,
        time_chars=_parse_int(data, "time_chars", 4, 1, errors, prefix),
        random_chars=_parse_int(data, "random_chars", 2, 0, errors, prefix),
        sequence_width=_parse_int(data, "sequence_width", 4, 1, errors, prefix),
        max_attempts=_parse_int(data, "max_attempts", 5, 1, errors, prefix),
    )


def parse_roles(data: dict[str, Any], errors: list[str]) -> RolePolicyConfig:
    raw = data.get("minimum_invoice_role", ActorRole.MANAGER.value)
    try:
        role = ActorRole(raw)
    except ValueError:
        errors.append(
            f"roles.minimum_invoice_role: unknown role {raw!r}; expected one of "
            f"{[r.value for r in ActorRole]}"
        )
        role = ActorRole.MANAGER
    return RolePolicyConfig(minimum_invoice_role=role)


def parse_config(data: dict[str, Any], source: str) -> BillingEngineConfig:
    """
    Parse and validate one configuration set.

    Raises:
        ConfigurationError: listing every problem found.
    """
    errors: list[str] = []

    config_id = data.get("config_id")
    if not isinstance(config_id, str) or not config_id.strip():
        errors.append("config_id: required non-empty string")
        config_id = ""

    version = data.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        errors.append(f"version: expected a positive integer, got {version!r}")
        version = 1

    if "fallback_electric_rate" not in data:
        errors.append("fallback_electric_rate: required")
        fallback_rate = None
    else:
        fallback_rate = _parse_decimal(
            data["fallback_electric_rate"], "fallback_electric_rate", errors,
        )

    currency_symbol = data.get("currency_symbol", "$")
    if not isinstance(currency_symbol, str) or not currency_symbol:
        errors.append(f"currency_symbol: required non-empty string, got {currency_symbol!r}")
        currency_symbol = "$"

    invoice_number_data = data.get("invoice_number") or {}
    roles_data = data.get("roles") or {}
    for key, section in (("invoice_number", invoice_number_data), ("roles", roles_data)):
        if not isinstance(section, dict):
            errors.append(f"{key}: expected a mapping")
    invoice_number = parse_invoice_number(
        invoice_number_data if isinstance(invoice_number_data, dict) else {}, errors,
    )
    roles = parse_roles(roles_data if isinstance(roles_data, dict) else {}, errors)

    if errors:
        raise ConfigurationError(source, errors)

    return BillingEngineConfig(
        config_id=config_id,
        version=version,
        fallback_electric_rate=fallback_rate,
        currency_symbol=currency_symbol,
        invoice_number=invoice_number,
        roles=roles,
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> BillingEngineConfig:
    return parse_config(load_yaml_file(path), source=str(path))
