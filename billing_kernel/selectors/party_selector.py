"""
Module: billing_kernel.selectors.party_selector
Responsibility: Identity lookups for properties and tenants.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from billing_kernel.models.property import Property, Tenant
from billing_kernel.selectors.base import BaseSelector


@dataclass(frozen=True, slots=True)
class PropertyView:
    id: UUID
    name: str
    address: str | None
    is_active: bool


@dataclass(frozen=True, slots=True)
class TenantView:
    id: UUID
    property_id: UUID
    name: str
    email: str | None
    unit_number: str | None
    is_active: bool


class PartySelector(BaseSelector[Property]):
    """Property and tenant lookups."""

    def get_property(self, property_id: UUID) -> PropertyView | None:
        row = self.session.get(Property, property_id)
        if row is None:
            return None
        return PropertyView(
            id=row.id, name=row.name, address=row.address, is_active=row.is_active,
        )

    def get_tenant(self, tenant_id: UUID) -> TenantView | None:
        row = self.session.get(Tenant, tenant_id)
        if row is None:
            return None
        return TenantView(
            id=row.id,
            property_id=row.property_id,
            name=row.name,
            email=row.email,
            unit_number=row.unit_number,
            is_active=row.is_active,
        )
