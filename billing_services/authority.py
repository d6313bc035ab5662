"""
Role policy helper for the calling layer.

The billing engine assumes the acting user was authorized upstream and does
not enforce roles itself.  ``require_role`` states the expected policy in
one place so API handlers and scripts can apply it before calling
``InvoicingService.generate_invoice``.
"""

from __future__ import annotations

from billing_kernel.domain.invoice import ActorContext, ActorRole
from billing_kernel.exceptions import InsufficientRoleError
from billing_kernel.logging_config import get_logger

logger = get_logger("services.authority")


def require_role(actor: ActorContext, minimum: ActorRole = ActorRole.MANAGER) -> None:
    """
    Raise unless ``actor`` holds ``minimum`` or a higher role.

    Raises:
        InsufficientRoleError
    """
    if ActorRole(actor.role).at_least(minimum):
        return
    logger.warning(
        "actor_role_rejected",
        extra={
            "actor_id": str(actor.actor_id),
            "actor_role": ActorRole(actor.role).value,
            "required_role": minimum.value,
        },
    )
    raise InsufficientRoleError(
        str(actor.actor_id), ActorRole(actor.role).value, minimum.value,
    )


def can_generate_invoices(actor: ActorContext, minimum: ActorRole = ActorRole.MANAGER) -> bool:
    return ActorRole(actor.role).at_least(minimum)
