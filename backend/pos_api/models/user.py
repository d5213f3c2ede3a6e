"""
User and access models: User, Role, Permission.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Column, ForeignKey, String, Table as SATable, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK, TimestampMixin


role_permission = SATable(
    "role_permission",
    Base.metadata,
    Column("role_id", BigIntPK, ForeignKey("role.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "permission_id", BigIntPK, ForeignKey("permission.id", ondelete="CASCADE"), primary_key=True
    ),
)


class Permission(TimestampMixin, Base):
    """A permission identified by its slug (e.g. 'gestionar_mesas')."""

    __tablename__ = "permission"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    roles: Mapped[list["Role"]] = relationship(
        secondary=role_permission, back_populates="permissions"
    )

    def __repr__(self) -> str:
        return f"<Permission(slug={self.slug})>"


class Role(TimestampMixin, Base):
    """Staff role. Each user has exactly one."""

    __tablename__ = "role"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    permissions: Mapped[list["Permission"]] = relationship(
        secondary=role_permission, back_populates="roles"
    )
    users: Mapped[list["User"]] = relationship(back_populates="role")

    def has_permission(self, slug: str) -> bool:
        """Slug membership test."""
        return any(p.slug == slug for p in self.permissions)

    @property
    def permission_slugs(self) -> list[str]:
        return sorted(p.slug for p in self.permissions)

    def __repr__(self) -> str:
        return f"<Role(slug={self.slug})>"


class User(AuditMixin, Base):
    """Staff member (admin, bartender, waiter, cashier)."""

    __tablename__ = "app_user"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    role_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("role.id"), nullable=True, index=True
    )

    role: Mapped[Optional["Role"]] = relationship(back_populates="users")

    @property
    def role_slug(self) -> str | None:
        return self.role.slug if self.role else None

    def has_role(self, slug: str) -> bool:
        return self.role_slug == slug

    def has_permission(self, slug: str) -> bool:
        return bool(self.role and self.role.has_permission(slug))
