"""Schemas for derived positions, ownership and statements."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class RestrictionLegend(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    restriction_type: str
    restriction_name: str
    description: str | None


class LedgerLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transfer_id: str
    transaction_date: datetime
    transaction_type: str | None
    direction: int = Field(..., description="1 for credits, -1 for debits")
    share_quantity: int
    signed_quantity: int
    running_balance: int


class PositionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    shareholder_id: str
    cusip: str
    security_name: str | None
    security_type: str | None
    shares_outstanding: int
    restricted_shares: int
    restrictions: list[RestrictionLegend]


class LedgerPositionRead(PositionRead):
    lines: list[LedgerLineRead]


class PositionsResponse(BaseModel):
    issuer_id: str
    shareholder_id: str
    as_of: date
    positions: list[PositionRead]


class LedgerResponse(BaseModel):
    issuer_id: str
    shareholder_id: str
    as_of: date
    positions: list[LedgerPositionRead]


class ShareholderOwnershipRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    shareholder_id: str
    full_name: str | None = None
    account_number: str | None = None
    shares_by_cusip: dict[str, int]
    total_shares: int
    ownership_percentage: Decimal
    security_percentages: dict[str, Decimal]
    security_ids: list[str]


class OwnershipResponse(BaseModel):
    issuer_id: str
    as_of: date
    total_shares: int
    totals_by_cusip: dict[str, int]
    shareholders: list[ShareholderOwnershipRead]


class StatementRequest(BaseModel):
    as_of: date
    shareholder_ids: list[str] | None = Field(
        default=None, description="Limit the batch; defaults to every current holder"
    )


class StatementHoldingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    cusip: str
    security_name: str | None
    security_type: str | None
    shares_outstanding: int
    restricted_shares: int
    unrestricted_shares: int
    price_per_share: Decimal | None
    market_value: Decimal | None


class StatementActivityRead(BaseModel):
    cusip: str
    transfer_id: str
    transaction_date: datetime
    transaction_type: str | None
    signed_quantity: int
    running_balance: int


class StatementRead(BaseModel):
    issuer_id: str
    issuer_name: str
    shareholder_id: str
    shareholder_name: str
    account_number: str
    as_of: date
    total_shares: int
    total_market_value: Decimal | None
    holdings: list[StatementHoldingRead]
    activity: list[StatementActivityRead]
    legends: list[RestrictionLegend]


__all__ = [
    "LedgerLineRead",
    "LedgerPositionRead",
    "LedgerResponse",
    "OwnershipResponse",
    "PositionRead",
    "PositionsResponse",
    "RestrictionLegend",
    "ShareholderOwnershipRead",
    "StatementActivityRead",
    "StatementHoldingRead",
    "StatementRead",
    "StatementRequest",
]
