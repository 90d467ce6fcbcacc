"""Shareholder statements built from derived positions."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from transfer_agent.core.config import Settings
from transfer_agent.models import Issuer, MarketValue, Shareholder
from transfer_agent.services.positions import (
    LedgerLine,
    PositionSet,
    RestrictionTemplateEntry,
    derive_positions,
)

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")


@dataclass(slots=True, frozen=True)
class StatementHolding:
    cusip: str
    security_name: str | None
    security_type: str | None
    shares_outstanding: int
    restricted_shares: int
    price_per_share: Decimal | None
    market_value: Decimal | None
    restrictions: tuple[RestrictionTemplateEntry, ...]

    @property
    def unrestricted_shares(self) -> int:
        return max(self.shares_outstanding - self.restricted_shares, 0)


@dataclass(slots=True, frozen=True)
class StatementActivity:
    cusip: str
    line: LedgerLine


@dataclass(slots=True, frozen=True)
class Statement:
    issuer_id: str
    issuer_name: str
    shareholder_id: str
    shareholder_name: str
    account_number: str
    as_of: date
    holdings: tuple[StatementHolding, ...]
    activity: tuple[StatementActivity, ...]
    legends: tuple[RestrictionTemplateEntry, ...]

    @property
    def total_shares(self) -> int:
        return sum(holding.shares_outstanding for holding in self.holdings)

    @property
    def total_market_value(self) -> Decimal | None:
        values = [holding.market_value for holding in self.holdings if holding.market_value is not None]
        if not values:
            return None
        return sum(values, Decimal("0.00"))


def latest_prices(session: Session, issuer_id: str, cusips: set[str], as_of: date) -> dict[str, Decimal]:
    """Most recent per-share price on or before ``as_of`` for each CUSIP."""

    if not cusips:
        return {}
    rows = session.execute(
        select(MarketValue.cusip, MarketValue.price_per_share)
        .where(
            MarketValue.issuer_id == issuer_id,
            MarketValue.cusip.in_(cusips),
            MarketValue.valuation_date <= as_of,
        )
        .order_by(MarketValue.cusip, MarketValue.valuation_date.desc())
    ).all()
    prices: dict[str, Decimal] = {}
    for cusip, price in rows:
        prices.setdefault(cusip, Decimal(str(price)))
    return prices


def _statement_for(
    position_set: PositionSet,
    issuer: Issuer,
    shareholder: Shareholder,
    prices: dict[str, Decimal],
) -> Statement:
    holdings = []
    legends: dict[str, RestrictionTemplateEntry] = {}
    for position in position_set.holdings(shareholder.id):
        price = prices.get(position.cusip)
        holdings.append(
            StatementHolding(
                cusip=position.cusip,
                security_name=position.security_name,
                security_type=position.security_type,
                shares_outstanding=position.shares_outstanding,
                restricted_shares=position.restricted_shares,
                price_per_share=price,
                market_value=(price * position.shares_outstanding).quantize(_CENTS) if price is not None else None,
                restrictions=position.restrictions,
            )
        )
        for template in position.restrictions:
            legends.setdefault(template.id, template)

    activity = sorted(
        (
            StatementActivity(cusip=position.cusip, line=line)
            for position in position_set.ledger(shareholder.id)
            for line in position.lines
        ),
        key=lambda entry: (entry.line.transaction_date, entry.line.transfer_id),
    )
    return Statement(
        issuer_id=issuer.id,
        issuer_name=issuer.display_name or issuer.issuer_name,
        shareholder_id=shareholder.id,
        shareholder_name=shareholder.full_name,
        account_number=shareholder.account_number,
        as_of=position_set.as_of,
        holdings=tuple(holdings),
        activity=tuple(activity),
        legends=tuple(legends.values()),
    )


def build_statements(
    session: Session,
    issuer: Issuer,
    *,
    as_of: date,
    shareholder_ids: list[str] | None = None,
    settings: Settings | None = None,
) -> list[Statement]:
    """Build statements for the given shareholders, or every current holder.

    Positions are derived once for the issuer and shared by every statement
    in the batch.
    """

    position_set = derive_positions(session, issuer.id, as_of=as_of, settings=settings)
    statement = select(Shareholder).where(Shareholder.issuer_id == issuer.id)
    if shareholder_ids is not None:
        statement = statement.where(Shareholder.id.in_(shareholder_ids))
    else:
        holders = {position.shareholder_id for position in position_set.holdings()}
        statement = statement.where(Shareholder.id.in_(holders))
    shareholders = list(session.scalars(statement.order_by(Shareholder.full_name)).all())

    cusips = {position.cusip for position in position_set.holdings()}
    prices = latest_prices(session, issuer.id, cusips, as_of)
    statements = [_statement_for(position_set, issuer, shareholder, prices) for shareholder in shareholders]
    logger.info(
        "statements built",
        extra={"issuer_id": issuer.id, "as_of": as_of.isoformat(), "statements": len(statements)},
    )
    return statements


__all__ = [
    "Statement",
    "StatementActivity",
    "StatementHolding",
    "build_statements",
    "latest_prices",
]
