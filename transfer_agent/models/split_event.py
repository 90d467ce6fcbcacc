"""Unit split ratio ORM model."""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy import ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from transfer_agent.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class SplitEvent(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """How many Class A shares and rights or warrants one unit separates into."""

    __tablename__ = "split_events"
    __table_args__ = (UniqueConstraint("issuer_id", "transaction_type", name="uq_split_events_issuer_type"),)

    issuer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("issuers.id", ondelete="CASCADE"), nullable=False
    )
    transaction_type: Mapped[str] = mapped_column(String(64), nullable=False, default="separation")
    class_a_ratio: Mapped[Decimal] = mapped_column(Numeric(12, 6), nullable=False)
    rights_ratio: Mapped[Decimal] = mapped_column(Numeric(12, 6), nullable=False)

    issuer = relationship("Issuer")


__all__ = ["SplitEvent"]
