"""Schemas for unit split ratios."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class SplitEventCreate(BaseModel):
    transaction_type: str = Field(default="separation", min_length=1, max_length=64)
    class_a_ratio: Decimal = Field(..., gt=0, max_digits=12, decimal_places=6)
    rights_ratio: Decimal = Field(..., ge=0, max_digits=12, decimal_places=6)


class SplitEventRead(SplitEventCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    issuer_id: str
    created_at: datetime
    updated_at: datetime


__all__ = ["SplitEventCreate", "SplitEventRead"]
