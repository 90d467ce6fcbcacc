"""Pydantic schemas for shareholder resources."""
from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from transfer_agent.models.shareholder import ShareholderType


class ShareholderBase(BaseModel):
    account_number: str = Field(..., min_length=1, max_length=64)
    full_name: str = Field(..., min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=320)
    phone_number: str | None = Field(default=None, max_length=32)
    tax_id: str | None = Field(default=None, max_length=32)
    type: ShareholderType = Field(default=ShareholderType.INDIVIDUAL)
    address: dict | None = None


class ShareholderCreate(ShareholderBase):
    pass


class ShareholderUpdate(BaseModel):
    account_number: str | None = Field(default=None, min_length=1, max_length=64)
    full_name: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=320)
    phone_number: str | None = Field(default=None, max_length=32)
    tax_id: str | None = Field(default=None, max_length=32)
    type: ShareholderType | None = None
    address: dict | None = None


class ShareholderRead(ShareholderBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    issuer_id: str


class ShareholderSummary(ShareholderRead):
    """Shareholder list entry enriched with current ownership."""

    total_shares: int = 0
    ownership_percentage: Decimal = Decimal("0.00")
    position_shares: dict[str, int] = Field(default_factory=dict)
    security_ids: list[str] = Field(default_factory=list)


__all__ = [
    "ShareholderBase",
    "ShareholderCreate",
    "ShareholderRead",
    "ShareholderSummary",
    "ShareholderUpdate",
]
