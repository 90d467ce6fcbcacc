"""Pydantic schemas for issuer resources."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from transfer_agent.models.issuer import IssuerStatus

SplitSecurityType = Literal["Warrant", "Right"]


class IssuerBase(BaseModel):
    issuer_name: str = Field(..., min_length=1, max_length=255)
    display_name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    ticker_symbol: str | None = Field(default=None, max_length=16)
    split_security_type: SplitSecurityType | None = None


class IssuerCreate(IssuerBase):
    status: IssuerStatus = Field(default=IssuerStatus.PENDING)


class IssuerUpdate(BaseModel):
    display_name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    ticker_symbol: str | None = Field(default=None, max_length=16)
    split_security_type: SplitSecurityType | None = None
    status: IssuerStatus | None = None


class IssuerDeleteRequest(BaseModel):
    """Deleting an issuer requires typing its exact name."""

    confirmation: str


class IssuerRead(IssuerBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: IssuerStatus
    created_at: datetime


__all__ = ["IssuerCreate", "IssuerDeleteRequest", "IssuerRead", "IssuerUpdate"]
