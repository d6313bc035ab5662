"""
Module: billing_kernel.models.property
Responsibility: ORM persistence for the two collaborator entities the
    billing engine references by identity: the Property that receives
    supplier utility bills and the Tenant who is invoiced.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A Tenant belongs to exactly one Property (NOT NULL foreign key).

Failure modes:
    - IntegrityError when a Tenant references a missing Property.
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase, UUIDString


class Property(TrackedBase):
    """A managed building whose supplier bills are allocated to tenants."""

    __tablename__ = "properties"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Property {self.name}>"


class Tenant(TrackedBase):
    """An occupant of a property who receives pro-rata invoices."""

    __tablename__ = "tenants"

    __table_args__ = (
        Index("idx_tenant_property", "property_id"),
    )

    property_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("properties.id"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    unit_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Tenant {self.name} unit={self.unit_number}>"
