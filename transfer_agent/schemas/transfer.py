"""Schemas for journal entries and transfers."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TransactionCreate(BaseModel):
    """A single journal entry such as an issuance or DWAC movement."""

    shareholder_id: str
    cusip: str = Field(..., min_length=1, max_length=16)
    transaction_type: str = Field(..., min_length=1, max_length=64)
    share_quantity: int = Field(..., gt=0)
    transaction_date: datetime | None = Field(
        default=None, description="Effective date; defaults to the time of posting"
    )
    restriction_id: str | None = None
    notes: str | None = None


class TransferCreate(BaseModel):
    """Move shares from one shareholder to another."""

    from_shareholder_id: str
    to_shareholder_id: str
    cusip: str = Field(..., min_length=1, max_length=16)
    share_quantity: int = Field(..., gt=0)
    transaction_date: datetime | None = None
    notes: str | None = None


class TransferRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    issuer_id: str
    shareholder_id: str
    cusip: str
    transaction_type: str
    share_quantity: int
    restriction_id: str | None
    transaction_date: datetime
    created_by: str | None
    notes: str | None


class TransferPostingRead(BaseModel):
    debit: TransferRead
    credit: TransferRead


class ImportResultRead(BaseModel):
    imported: int
    transfer_ids: list[str]


__all__ = [
    "ImportResultRead",
    "TransactionCreate",
    "TransferCreate",
    "TransferPostingRead",
    "TransferRead",
]
