"""
Billing engine configuration schema.

Frozen dataclasses that YAML configuration sets are parsed into.  The
runtime never sees YAML; it receives a ``BillingEngineConfig`` from
``billing_config.get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from billing_kernel.domain.invoice import ActorRole

INVOICE_NUMBER_MODES = ("token", "sequence")


@dataclass(frozen=True)
class InvoiceNumberConfig:
    """How invoice number tokens are produced."""

    mode: str = "token"
    time_chars: int = 4
    random_chars: int = 2
    sequence_width: int = 4
    max_attempts: int = 5

    @property
    def uses_sequence(self) -> bool:
        return self.mode == "sequence"


@dataclass(frozen=True)
class RolePolicyConfig:
    """Role policy the calling layer is expected to enforce."""

    minimum_invoice_role: ActorRole = ActorRole.MANAGER


@dataclass(frozen=True)
class BillingEngineConfig:
    """The runtime configuration artifact."""

    config_id: str
    version: int
    fallback_electric_rate: Decimal
    currency_symbol: str = "$"
    invoice_number: InvoiceNumberConfig = field(default_factory=InvoiceNumberConfig)
    roles: RolePolicyConfig = field(default_factory=RolePolicyConfig)
    checksum: str = ""
