"""Shareholder endpoints scoped to an issuer."""
from __future__ import annotations

from datetime import UTC, date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from transfer_agent.api.access import IssuerAccess, require_issuer_role
from transfer_agent.api.deps import get_db_session
from transfer_agent.models import Shareholder, Transfer
from transfer_agent.schemas.position import LedgerResponse, PositionsResponse
from transfer_agent.schemas.shareholder import (
    ShareholderCreate,
    ShareholderRead,
    ShareholderSummary,
    ShareholderUpdate,
)
from transfer_agent.services.ownership import summarize_ownership
from transfer_agent.services.positions import (
    DataFetchError,
    PositionError,
    UnknownTransactionTypeError,
    derive_positions,
)
from transfer_agent.services.roles import READ_ONLY, TRANSFER_TEAM

router = APIRouter()


def today() -> date:
    return datetime.now(UTC).date()


def _ensure_shareholder_belongs_to_issuer(
    *, shareholder: Shareholder | None, issuer_id: str
) -> Shareholder:
    if shareholder is None or shareholder.issuer_id != issuer_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shareholder not found")
    return shareholder


def position_error_to_http(exc: PositionError) -> HTTPException:
    if isinstance(exc, DataFetchError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    if isinstance(exc, UnknownTransactionTypeError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


@router.post("/", response_model=ShareholderRead, status_code=status.HTTP_201_CREATED)
def create_shareholder(
    payload: ShareholderCreate,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(TRANSFER_TEAM)),
) -> ShareholderRead:
    shareholder = Shareholder(issuer_id=access.issuer.id, **payload.model_dump())
    session.add(shareholder)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Shareholder with this account number already exists",
        ) from exc
    session.refresh(shareholder)
    return ShareholderRead.model_validate(shareholder)


@router.get("/", response_model=list[ShareholderSummary])
def list_shareholders(
    as_of: date | None = Query(default=None),
    cusip: str | None = Query(default=None, description="Only holders of this security"),
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(READ_ONLY)),
) -> list[ShareholderSummary]:
    issuer_id = access.issuer.id
    try:
        positions = derive_positions(session, issuer_id, as_of=as_of or today())
    except PositionError as exc:
        raise position_error_to_http(exc) from exc
    ownership = summarize_ownership(positions)

    statement = select(Shareholder).where(Shareholder.issuer_id == issuer_id).order_by(Shareholder.full_name)
    summaries = []
    for shareholder in session.scalars(statement).all():
        entry = ownership.for_shareholder(shareholder.id)
        if cusip is not None and (entry is None or cusip not in entry.security_ids):
            continue
        summary = ShareholderSummary.model_validate(shareholder)
        if entry is not None:
            summary.total_shares = entry.total_shares
            summary.ownership_percentage = entry.ownership_percentage
            summary.position_shares = dict(entry.shares_by_cusip)
            summary.security_ids = entry.security_ids
        summaries.append(summary)
    return summaries


@router.get("/{shareholder_id}", response_model=ShareholderRead)
def get_shareholder(
    shareholder_id: str,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(READ_ONLY)),
) -> ShareholderRead:
    shareholder = _ensure_shareholder_belongs_to_issuer(
        shareholder=session.get(Shareholder, shareholder_id), issuer_id=access.issuer.id
    )
    return ShareholderRead.model_validate(shareholder)


@router.put("/{shareholder_id}", response_model=ShareholderRead)
def update_shareholder(
    shareholder_id: str,
    payload: ShareholderUpdate,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(TRANSFER_TEAM)),
) -> ShareholderRead:
    shareholder = _ensure_shareholder_belongs_to_issuer(
        shareholder=session.get(Shareholder, shareholder_id), issuer_id=access.issuer.id
    )
    for field_name, value in payload.model_dump(exclude_unset=True).items():
        setattr(shareholder, field_name, value)

    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Shareholder with this account number already exists",
        ) from exc
    session.refresh(shareholder)
    return ShareholderRead.model_validate(shareholder)


@router.delete("/{shareholder_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_shareholder(
    shareholder_id: str,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(TRANSFER_TEAM)),
) -> None:
    shareholder = _ensure_shareholder_belongs_to_issuer(
        shareholder=session.get(Shareholder, shareholder_id), issuer_id=access.issuer.id
    )
    has_history = session.scalar(select(exists().where(Transfer.shareholder_id == shareholder.id)))
    if has_history:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Shareholder has journal entries and cannot be deleted",
        )
    session.delete(shareholder)
    session.commit()


@router.get("/{shareholder_id}/positions", response_model=PositionsResponse)
def get_positions(
    shareholder_id: str,
    as_of: date | None = Query(default=None),
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(READ_ONLY)),
) -> PositionsResponse:
    shareholder = _ensure_shareholder_belongs_to_issuer(
        shareholder=session.get(Shareholder, shareholder_id), issuer_id=access.issuer.id
    )
    effective = as_of or today()
    try:
        positions = derive_positions(
            session, access.issuer.id, as_of=effective, shareholder_id=shareholder.id
        )
    except PositionError as exc:
        raise position_error_to_http(exc) from exc
    return PositionsResponse.model_validate(
        {
            "issuer_id": access.issuer.id,
            "shareholder_id": shareholder_id,
            "as_of": effective,
            "positions": positions.holdings(shareholder_id),
        },
        from_attributes=True,
    )


@router.get("/{shareholder_id}/ledger", response_model=LedgerResponse)
def get_ledger(
    shareholder_id: str,
    as_of: date | None = Query(default=None),
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(READ_ONLY)),
) -> LedgerResponse:
    shareholder = _ensure_shareholder_belongs_to_issuer(
        shareholder=session.get(Shareholder, shareholder_id), issuer_id=access.issuer.id
    )
    effective = as_of or today()
    try:
        positions = derive_positions(
            session, access.issuer.id, as_of=effective, shareholder_id=shareholder.id
        )
    except PositionError as exc:
        raise position_error_to_http(exc) from exc
    return LedgerResponse.model_validate(
        {
            "issuer_id": access.issuer.id,
            "shareholder_id": shareholder_id,
            "as_of": effective,
            "positions": positions.ledger(shareholder_id),
        },
        from_attributes=True,
    )


__all__ = [
    "create_shareholder",
    "delete_shareholder",
    "get_ledger",
    "get_positions",
    "get_shareholder",
    "list_shareholders",
    "position_error_to_http",
    "router",
    "today",
    "update_shareholder",
]
