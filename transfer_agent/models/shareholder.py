"""Shareholder ORM model."""
from __future__ import annotations

import enum

from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from transfer_agent.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class ShareholderType(str, enum.Enum):
    INDIVIDUAL = "INDIVIDUAL"
    INSTITUTION = "INSTITUTION"


class Shareholder(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Represents a shareholder account scoped to an issuer."""

    __tablename__ = "shareholders"
    __table_args__ = (
        UniqueConstraint("issuer_id", "account_number", name="uq_shareholders_issuer_account_number"),
        Index("ix_shareholders_issuer_id", "issuer_id"),
        Index("ix_shareholders_email", "email"),
    )

    issuer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("issuers.id", ondelete="CASCADE"), nullable=False
    )
    account_number: Mapped[str] = mapped_column(String(64), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320))
    phone_number: Mapped[str | None] = mapped_column(String(32))
    tax_id: Mapped[str | None] = mapped_column(String(32))
    type: Mapped[ShareholderType] = mapped_column(
        SAEnum(ShareholderType, name="shareholder_type"),
        nullable=False,
        default=ShareholderType.INDIVIDUAL,
    )
    address: Mapped[dict | None] = mapped_column(JSON)

    issuer = relationship("Issuer", back_populates="shareholders")
    transfers = relationship(
        "Transfer", back_populates="shareholder", cascade="all, delete-orphan", passive_deletes=True
    )


__all__ = ["Shareholder", "ShareholderType"]
