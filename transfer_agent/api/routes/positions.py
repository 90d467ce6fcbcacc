"""Issuer-wide ownership and statement endpoints."""
from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from transfer_agent.api.access import IssuerAccess, require_issuer_role
from transfer_agent.api.deps import get_db_session
from transfer_agent.api.routes.shareholders import position_error_to_http, today
from transfer_agent.models import Shareholder
from transfer_agent.schemas.position import (
    OwnershipResponse,
    RestrictionLegend,
    ShareholderOwnershipRead,
    StatementActivityRead,
    StatementHoldingRead,
    StatementRead,
    StatementRequest,
)
from transfer_agent.services.ownership import summarize_ownership
from transfer_agent.services.positions import PositionError, derive_positions
from transfer_agent.services.roles import READ_ONLY, TRANSFER_TEAM
from transfer_agent.services.statements import Statement, build_statements

router = APIRouter()


@router.get("/ownership", response_model=OwnershipResponse)
def get_ownership(
    as_of: date | None = Query(default=None),
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(READ_ONLY)),
) -> OwnershipResponse:
    effective = as_of or today()
    try:
        positions = derive_positions(session, access.issuer.id, as_of=effective)
    except PositionError as exc:
        raise position_error_to_http(exc) from exc
    summary = summarize_ownership(positions)

    holder_ids = [entry.shareholder_id for entry in summary.shareholders]
    shareholders = {
        shareholder.id: shareholder
        for shareholder in session.scalars(select(Shareholder).where(Shareholder.id.in_(holder_ids))).all()
    }
    rows = []
    for entry in summary.shareholders:
        row = ShareholderOwnershipRead.model_validate(entry)
        shareholder = shareholders.get(entry.shareholder_id)
        if shareholder is not None:
            row.full_name = shareholder.full_name
            row.account_number = shareholder.account_number
        rows.append(row)

    return OwnershipResponse(
        issuer_id=access.issuer.id,
        as_of=effective,
        total_shares=summary.total_shares,
        totals_by_cusip=summary.totals_by_cusip,
        shareholders=rows,
    )


def _statement_read(statement: Statement) -> StatementRead:
    return StatementRead(
        issuer_id=statement.issuer_id,
        issuer_name=statement.issuer_name,
        shareholder_id=statement.shareholder_id,
        shareholder_name=statement.shareholder_name,
        account_number=statement.account_number,
        as_of=statement.as_of,
        total_shares=statement.total_shares,
        total_market_value=statement.total_market_value,
        holdings=[StatementHoldingRead.model_validate(holding) for holding in statement.holdings],
        activity=[
            StatementActivityRead(
                cusip=entry.cusip,
                transfer_id=entry.line.transfer_id,
                transaction_date=entry.line.transaction_date,
                transaction_type=entry.line.transaction_type,
                signed_quantity=entry.line.signed_quantity,
                running_balance=entry.line.running_balance,
            )
            for entry in statement.activity
        ],
        legends=[RestrictionLegend.model_validate(legend) for legend in statement.legends],
    )


@router.post("/statements", response_model=list[StatementRead])
def generate_statements(
    payload: StatementRequest,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(TRANSFER_TEAM)),
) -> list[StatementRead]:
    try:
        statements = build_statements(
            session,
            access.issuer,
            as_of=payload.as_of,
            shareholder_ids=payload.shareholder_ids,
        )
    except PositionError as exc:
        raise position_error_to_http(exc) from exc
    return [_statement_read(statement) for statement in statements]


__all__ = ["generate_statements", "get_ownership", "router"]
