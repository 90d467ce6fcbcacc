"""Issuer ORM model."""
from __future__ import annotations

import enum

from sqlalchemy import Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from transfer_agent.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class IssuerStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    SUSPENDED = "SUSPENDED"


class Issuer(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A company whose shareholder records are kept by the registry.

    Every other record in the registry is scoped to exactly one issuer.
    ``PENDING`` issuers are onboarding and accept reference data only;
    ``SUSPENDED`` issuers are read-only.
    """

    __tablename__ = "issuers"

    issuer_name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    display_name: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    ticker_symbol: Mapped[str | None] = mapped_column(String(16))
    split_security_type: Mapped[str | None] = mapped_column(String(16))
    status: Mapped[IssuerStatus] = mapped_column(
        Enum(IssuerStatus, name="issuer_status"), nullable=False, default=IssuerStatus.PENDING
    )

    shareholders = relationship("Shareholder", back_populates="issuer", cascade="all, delete-orphan")
    securities = relationship("Security", back_populates="issuer", cascade="all, delete-orphan")
    transfers = relationship("Transfer", back_populates="issuer", cascade="all, delete-orphan")
    documents = relationship("Document", back_populates="issuer", cascade="all, delete-orphan")
    audit_logs = relationship("AuditLog", back_populates="issuer", cascade="all, delete-orphan")


__all__ = ["Issuer", "IssuerStatus"]
