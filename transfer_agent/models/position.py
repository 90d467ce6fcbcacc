"""Balance snapshot ORM model."""
from __future__ import annotations

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from transfer_agent.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class ShareholderPosition(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Running balance kept in step with posted transfers.

    Written in the same transaction as the journal rows. Position reads
    recompute from the journal and never consult this table.
    """

    __tablename__ = "shareholder_positions"
    __table_args__ = (
        UniqueConstraint("shareholder_id", "cusip", name="uq_shareholder_positions_holder_cusip"),
        Index("ix_shareholder_positions_issuer_id", "issuer_id"),
    )

    issuer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("issuers.id", ondelete="CASCADE"), nullable=False
    )
    shareholder_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shareholders.id", ondelete="CASCADE"), nullable=False
    )
    cusip: Mapped[str] = mapped_column(String(16), nullable=False)
    shares_owned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


__all__ = ["ShareholderPosition"]
