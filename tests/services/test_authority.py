"""Tests for the calling-layer role policy."""

from uuid import uuid4

import pytest

from billing_kernel.domain.invoice import ActorContext, ActorRole
from billing_kernel.exceptions import InsufficientRoleError
from billing_services.authority import can_generate_invoices, require_role


class TestRequireRole:

    @pytest.mark.parametrize("role", [ActorRole.MANAGER, ActorRole.ADMIN])
    def test_manager_or_higher_allowed(self, role):
        require_role(ActorContext(actor_id=uuid4(), role=role))

    def test_viewer_rejected(self, captured_logs):
        actor = ActorContext(actor_id=uuid4(), role=ActorRole.VIEWER)

        with pytest.raises(InsufficientRoleError) as exc_info:
            require_role(actor)

        assert exc_info.value.actor_role == "viewer"
        assert exc_info.value.required_role == "manager"
        assert exc_info.value.code == "INSUFFICIENT_ROLE"
        assert any(r["message"] == "actor_role_rejected" for r in captured_logs())

    def test_custom_minimum(self):
        with pytest.raises(InsufficientRoleError):
            require_role(ActorContext(actor_id=uuid4(), role=ActorRole.MANAGER), ActorRole.ADMIN)

    def test_role_given_as_string(self):
        require_role(ActorContext(actor_id=uuid4(), role="admin"))


class TestCanGenerateInvoices:

    def test_predicate(self, default_config):
        minimum = default_config.roles.minimum_invoice_role

        assert can_generate_invoices(ActorContext(uuid4(), ActorRole.MANAGER), minimum)
        assert not can_generate_invoices(ActorContext(uuid4(), ActorRole.VIEWER), minimum)
