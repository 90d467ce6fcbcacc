"""Broker transfer request ORM models."""
from __future__ import annotations

import enum

from sqlalchemy import Boolean, Enum, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from transfer_agent.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class TransferRequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class TransferRequest(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Request submitted by a broker for the transfer team to action.

    Unit split requests also carry the DTC participant and the three
    securities involved; for those ``quantity`` and ``cusip`` mirror the units.
    """

    __tablename__ = "transfer_requests"
    __table_args__ = (
        UniqueConstraint("issuer_id", "request_number", name="uq_transfer_requests_issuer_number"),
        Index("ix_transfer_requests_broker_id", "broker_id"),
    )

    issuer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("issuers.id", ondelete="CASCADE"), nullable=False
    )
    broker_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    request_number: Mapped[int] = mapped_column(Integer, nullable=False)
    request_type: Mapped[str] = mapped_column(String(64), nullable=False)
    shareholder_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_number: Mapped[str | None] = mapped_column(String(64))
    cusip: Mapped[str | None] = mapped_column(String(16))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    security_type: Mapped[str | None] = mapped_column(String(64))
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="normal")
    status: Mapped[TransferRequestStatus] = mapped_column(
        Enum(TransferRequestStatus, name="transfer_request_status"),
        nullable=False,
        default=TransferRequestStatus.PENDING,
    )
    request_purpose: Mapped[str | None] = mapped_column(Text)
    special_instructions: Mapped[str | None] = mapped_column(Text)
    status_note: Mapped[str | None] = mapped_column(Text)

    dtc_participant_number: Mapped[str | None] = mapped_column(String(4))
    dwac_submitted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    units_quantity: Mapped[int | None] = mapped_column(Integer)
    class_a_quantity: Mapped[int | None] = mapped_column(Integer)
    warrants_quantity: Mapped[int | None] = mapped_column(Integer)
    units_cusip: Mapped[str | None] = mapped_column(String(16))
    class_a_cusip: Mapped[str | None] = mapped_column(String(16))
    warrants_cusip: Mapped[str | None] = mapped_column(String(16))

    issuer = relationship("Issuer")
    broker = relationship("User")
    comments = relationship(
        "TransferRequestComment",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="TransferRequestComment.created_at",
    )


class TransferRequestComment(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Message on a transfer request; internal ones are hidden from brokers."""

    __tablename__ = "transfer_request_communications"
    __table_args__ = (Index("ix_transfer_request_communications_request_id", "request_id"),)

    request_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("transfer_requests.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    request = relationship("TransferRequest", back_populates="comments")
    author = relationship("User")


__all__ = ["TransferRequest", "TransferRequestComment", "TransferRequestStatus"]
