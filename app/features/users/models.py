"""
User model with ULID primary keys.
"""
from datetime import datetime
from sqlalchemy import String, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


class User(Base, TimestampMixin):
    """
    Authenticated user belonging to one tenant.

    Permissions come from `role_id` (custom role) when set, otherwise from the
    legacy `role` name and its default template.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Appwrite user ID (for linking with Appwrite authentication)
    appwrite_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    tenant_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    # Legacy role name: SUPER_ADMIN, ADMIN, PROJECT_MANAGER, ENGINEER, ACCOUNTANT
    role: Mapped[str | None] = mapped_column(String(50), nullable=True)

    role_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("roles.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)

    custom_role: Mapped["Role | None"] = relationship(  # type: ignore
        "Role",
        back_populates="users",
        foreign_keys=[role_id],
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, role={self.role}, role_id={self.role_id})>"
