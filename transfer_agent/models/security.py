"""Security and market value ORM models."""
from __future__ import annotations

from datetime import date

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from transfer_agent.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Security(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A class of securities issued by an issuer, keyed by CUSIP."""

    __tablename__ = "securities"
    __table_args__ = (
        UniqueConstraint("issuer_id", "cusip", name="uq_securities_issuer_cusip"),
        Index("ix_securities_issuer_id", "issuer_id"),
    )

    issuer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("issuers.id", ondelete="CASCADE"), nullable=False
    )
    cusip: Mapped[str] = mapped_column(String(16), nullable=False)
    issue_name: Mapped[str] = mapped_column(String(255), nullable=False)
    class_name: Mapped[str | None] = mapped_column(String(128))

    issuer = relationship("Issuer", back_populates="securities")


class MarketValue(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Per-share valuation of a security on a given date."""

    __tablename__ = "market_values"
    __table_args__ = (
        UniqueConstraint("issuer_id", "cusip", "valuation_date", name="uq_market_values_cusip_date"),
        Index("ix_market_values_issuer_id", "issuer_id"),
    )

    issuer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("issuers.id", ondelete="CASCADE"), nullable=False
    )
    cusip: Mapped[str] = mapped_column(String(16), nullable=False)
    valuation_date: Mapped[date] = mapped_column(Date, nullable=False)
    price_per_share: Mapped[float] = mapped_column(Numeric(18, 4), nullable=False)


__all__ = ["MarketValue", "Security"]
