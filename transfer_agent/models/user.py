"""User, role and issuer membership ORM models."""
from __future__ import annotations

import enum

from sqlalchemy import Boolean, Enum, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from transfer_agent.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INVITED = "INVITED"
    DISABLED = "DISABLED"


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A person who signs in to the registry."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(255))
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    is_super_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[UserStatus] = mapped_column(
        Enum(UserStatus, name="user_status"), nullable=False, default=UserStatus.ACTIVE
    )

    issuer_roles = relationship("IssuerUser", back_populates="user", cascade="all, delete-orphan")
    audit_logs = relationship("AuditLog", back_populates="actor")


class Role(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "roles"

    role_name: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    display_name: Mapped[str | None] = mapped_column(String(64))


class IssuerUser(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Role assignment for a user. ``issuer_id`` is null for brokers."""

    __tablename__ = "issuer_users"
    __table_args__ = (
        UniqueConstraint("user_id", "issuer_id", "role_id", name="uq_issuer_users_assignment"),
        Index("ix_issuer_users_issuer_id", "issuer_id"),
    )

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    issuer_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("issuers.id", ondelete="CASCADE")
    )
    role_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False
    )

    user = relationship("User", back_populates="issuer_roles")
    role = relationship("Role")


class InvitedUser(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Invitation waiting for the invitee's first sign-in."""

    __tablename__ = "invited_users"
    __table_args__ = (Index("ix_invited_users_email", "email"),)

    email: Mapped[str] = mapped_column(String(320), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255))
    issuer_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("issuers.id", ondelete="CASCADE")
    )
    role_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False
    )
    invited_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL")
    )

    role = relationship("Role")


__all__ = ["InvitedUser", "IssuerUser", "Role", "User", "UserStatus"]
