"""
Role model: a named permission tree owned by one tenant.
"""
from typing import Any, Dict
from sqlalchemy import String, Text, Boolean, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Role(Base, TimestampMixin):
    """
    Role within a tenant.

    System roles (is_system=True) are the four seeded defaults; their
    permission tree is frozen but their description may still change.
    Custom roles are fully editable and deletable while no user holds them.
    """
    __tablename__ = "roles"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_roles_tenant_name"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Tenant provisioning lives elsewhere; only the id is stored here
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Example: {"admin": {"manage_roles": true}, "transactions": {"max_approval_limit": 50000}}
    permissions: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)

    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Load explicitly with selectinload(Role.users)
    users: Mapped[list["User"]] = relationship(  # type: ignore
        "User",
        back_populates="custom_role",
        lazy="raise",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r}, tenant_id={self.tenant_id}, system={self.is_system})>"
