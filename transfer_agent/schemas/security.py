"""Schemas for securities, market values and restrictions."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class SecurityCreate(BaseModel):
    cusip: str = Field(..., min_length=1, max_length=16)
    issue_name: str = Field(..., min_length=1, max_length=255)
    class_name: str | None = Field(default=None, max_length=128)


class SecurityRead(SecurityCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    issuer_id: str


class MarketValueCreate(BaseModel):
    cusip: str = Field(..., min_length=1, max_length=16)
    valuation_date: date
    price_per_share: Decimal = Field(..., ge=Decimal("0"))


class MarketValueRead(MarketValueCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    issuer_id: str


class RestrictionTemplateCreate(BaseModel):
    restriction_type: str = Field(..., min_length=1, max_length=64)
    restriction_name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    is_active: bool = True


class RestrictionTemplateUpdate(BaseModel):
    restriction_name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    is_active: bool | None = None


class RestrictionTemplateRead(RestrictionTemplateCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    issuer_id: str


class ManualRestrictionCreate(BaseModel):
    shareholder_id: str
    cusip: str = Field(..., min_length=1, max_length=16)
    restricted_shares: int = Field(..., gt=0)
    restriction_id: str | None = None
    restriction_date: datetime | None = None
    notes: str | None = None


class ManualRestrictionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    issuer_id: str
    shareholder_id: str
    cusip: str
    restricted_shares: int
    restriction_id: str | None
    restriction_date: datetime
    notes: str | None


__all__ = [
    "ManualRestrictionCreate",
    "ManualRestrictionRead",
    "MarketValueCreate",
    "MarketValueRead",
    "RestrictionTemplateCreate",
    "RestrictionTemplateRead",
    "RestrictionTemplateUpdate",
    "SecurityCreate",
    "SecurityRead",
]
