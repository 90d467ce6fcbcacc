"""Restriction template and manual restriction ORM models."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from transfer_agent.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class RestrictionTemplate(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Legend text applied to restricted shares."""

    __tablename__ = "restrictions_templates"
    __table_args__ = (Index("ix_restrictions_templates_issuer_id", "issuer_id"),)

    issuer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("issuers.id", ondelete="CASCADE"), nullable=False
    )
    restriction_type: Mapped[str] = mapped_column(String(64), nullable=False)
    restriction_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class ManualRestriction(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Restriction placed on shares independently of a journal entry."""

    __tablename__ = "transaction_restrictions"
    __table_args__ = (
        CheckConstraint("restricted_shares > 0", name="ck_transaction_restrictions_shares_positive"),
        Index("ix_transaction_restrictions_issuer_date", "issuer_id", "restriction_date"),
    )

    issuer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("issuers.id", ondelete="CASCADE"), nullable=False
    )
    shareholder_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shareholders.id", ondelete="CASCADE"), nullable=False
    )
    cusip: Mapped[str] = mapped_column(String(16), nullable=False)
    restriction_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("restrictions_templates.id", ondelete="SET NULL")
    )
    restricted_shares: Mapped[int] = mapped_column(Integer, nullable=False)
    restriction_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    template = relationship("RestrictionTemplate")


__all__ = ["ManualRestriction", "RestrictionTemplate"]
