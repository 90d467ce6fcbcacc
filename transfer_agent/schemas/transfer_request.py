"""Schemas for broker transfer requests."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from transfer_agent.models.transfer_request import TransferRequestStatus


class TransferRequestCreate(BaseModel):
    request_type: str = Field(..., min_length=1, max_length=64)
    shareholder_name: str = Field(..., min_length=1, max_length=255)
    account_number: str | None = Field(default=None, max_length=64)
    cusip: str | None = Field(default=None, max_length=16)
    quantity: int = Field(..., gt=0)
    security_type: str | None = Field(default=None, max_length=64)
    priority: Literal["low", "normal", "high", "urgent"] = "normal"
    request_purpose: str | None = None
    special_instructions: str | None = None


class BrokerSplitRequestCreate(BaseModel):
    """Ask for units held at DTC to be separated into Class A shares and warrants or rights.

    Missing Class A or warrant quantities are derived from the issuer's
    separation ratio.
    """

    request_type: str = Field(default="Broker Split", min_length=1, max_length=64)
    dtc_participant_number: str = Field(..., pattern=r"^\d{4}$")
    dwac_submitted: bool = False
    units_quantity: int = Field(..., gt=0)
    class_a_quantity: int | None = Field(default=None, ge=0)
    warrants_quantity: int | None = Field(default=None, ge=0)
    units_cusip: str = Field(..., min_length=1, max_length=16)
    class_a_cusip: str = Field(..., min_length=1, max_length=16)
    warrants_cusip: str = Field(..., min_length=1, max_length=16)
    priority: Literal["low", "normal", "high", "urgent"] = "normal"
    notes: str | None = None


class TransferRequestStatusUpdate(BaseModel):
    status: Literal["APPROVED", "REJECTED"]
    note: str | None = None


class TransferRequestRead(TransferRequestCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    issuer_id: str
    broker_id: str
    request_number: int
    status: TransferRequestStatus
    status_note: str | None
    dtc_participant_number: str | None = None
    dwac_submitted: bool = False
    units_quantity: int | None = None
    class_a_quantity: int | None = None
    warrants_quantity: int | None = None
    units_cusip: str | None = None
    class_a_cusip: str | None = None
    warrants_cusip: str | None = None
    created_at: datetime


class FanOutSummaryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    notifications_created: int
    emails_sent: int
    emails_failed: int


class TransferRequestSubmitted(BaseModel):
    request: TransferRequestRead
    notifications: FanOutSummaryRead


class CommentCreate(BaseModel):
    message: str = Field(..., min_length=1)
    is_internal: bool = False


class CommentRead(CommentCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    request_id: str
    user_id: str | None
    created_at: datetime


__all__ = [
    "BrokerSplitRequestCreate",
    "CommentCreate",
    "CommentRead",
    "FanOutSummaryRead",
    "TransferRequestCreate",
    "TransferRequestRead",
    "TransferRequestStatusUpdate",
    "TransferRequestSubmitted",
]
