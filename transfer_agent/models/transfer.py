"""Transfer journal ORM model."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from transfer_agent.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Transfer(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Append-only journal entry moving shares into or out of an account.

    ``share_quantity`` is always positive; the direction is derived from
    ``transaction_type`` when positions are computed.
    """

    __tablename__ = "transfers"
    __table_args__ = (
        CheckConstraint("share_quantity > 0", name="ck_transfers_share_quantity_positive"),
        Index("ix_transfers_issuer_date", "issuer_id", "transaction_date"),
        Index("ix_transfers_shareholder_cusip", "shareholder_id", "cusip"),
    )

    issuer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("issuers.id", ondelete="CASCADE"), nullable=False
    )
    shareholder_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shareholders.id", ondelete="CASCADE"), nullable=False
    )
    cusip: Mapped[str] = mapped_column(String(16), nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(64), nullable=False)
    share_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    restriction_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("restrictions_templates.id", ondelete="SET NULL")
    )
    transaction_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    created_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL")
    )
    notes: Mapped[str | None] = mapped_column(Text)

    issuer = relationship("Issuer", back_populates="transfers")
    shareholder = relationship("Shareholder", back_populates="transfers")
    restriction = relationship("RestrictionTemplate")


__all__ = ["Transfer"]
