"""Journal posting, transfer and import endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from transfer_agent.api.access import IssuerAccess, require_issuer_role
from transfer_agent.api.deps import get_db_session
from transfer_agent.models import Transfer
from transfer_agent.schemas.transfer import (
    ImportResultRead,
    TransactionCreate,
    TransferCreate,
    TransferPostingRead,
    TransferRead,
)
from transfer_agent.services.imports import JournalImportError, JournalImportService
from transfer_agent.services.positions import PositionError
from transfer_agent.services.roles import READ_ONLY, TRANSFER_TEAM
from transfer_agent.services.transfers import (
    InsufficientSharesError,
    InvalidTransferError,
    IssuerNotActiveError,
    TransferError,
    TransferService,
)

router = APIRouter()


def transfer_error_to_http(exc: TransferError) -> HTTPException:
    if isinstance(exc, JournalImportError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(exc), "errors": exc.errors},
        )
    if isinstance(exc, InsufficientSharesError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(exc), "available": exc.available, "requested": exc.requested},
        )
    if isinstance(exc, IssuerNotActiveError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, InvalidTransferError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _position_error_to_http(exc: PositionError) -> HTTPException:
    from transfer_agent.api.routes.shareholders import position_error_to_http

    return position_error_to_http(exc)


@router.get("/transfers", response_model=list[TransferRead])
def list_transfers(
    shareholder_id: str | None = Query(default=None),
    cusip: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(READ_ONLY)),
) -> list[TransferRead]:
    statement = select(Transfer).where(Transfer.issuer_id == access.issuer.id)
    if shareholder_id is not None:
        statement = statement.where(Transfer.shareholder_id == shareholder_id)
    if cusip is not None:
        statement = statement.where(Transfer.cusip == cusip)
    statement = (
        statement.order_by(Transfer.transaction_date.desc(), Transfer.created_at.desc(), Transfer.id)
        .limit(limit)
        .offset(offset)
    )
    return [TransferRead.model_validate(item) for item in session.scalars(statement).all()]


@router.post("/transactions", response_model=TransferRead, status_code=status.HTTP_201_CREATED)
def record_transaction(
    payload: TransactionCreate,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(TRANSFER_TEAM)),
) -> TransferRead:
    service = TransferService(session)
    try:
        transfer = service.record_transaction(
            issuer_id=access.issuer.id,
            actor_id=access.user.user_id,
            **payload.model_dump(),
        )
    except TransferError as exc:
        raise transfer_error_to_http(exc) from exc
    except PositionError as exc:
        raise _position_error_to_http(exc) from exc
    return TransferRead.model_validate(transfer)


@router.post("/transfers", response_model=TransferPostingRead, status_code=status.HTTP_201_CREATED)
def post_transfer(
    payload: TransferCreate,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(TRANSFER_TEAM)),
) -> TransferPostingRead:
    service = TransferService(session)
    try:
        result = service.post_transfer(
            issuer_id=access.issuer.id,
            actor_id=access.user.user_id,
            **payload.model_dump(),
        )
    except TransferError as exc:
        raise transfer_error_to_http(exc) from exc
    except PositionError as exc:
        raise _position_error_to_http(exc) from exc
    return TransferPostingRead(
        debit=TransferRead.model_validate(result.debit),
        credit=TransferRead.model_validate(result.credit),
    )


@router.post("/transfers/import", response_model=ImportResultRead, status_code=status.HTTP_201_CREATED)
async def import_transfers(
    request: Request,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(TRANSFER_TEAM)),
) -> ImportResultRead:
    body = await request.body()
    if not body:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")

    content_type = request.headers.get("content-type", "application/octet-stream").split(";")[0]
    filename = request.headers.get("x-upload-filename")

    service = JournalImportService(session)
    try:
        rows = service.parse_rows(body=body, content_type=content_type, filename=filename)
    except (ValueError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    try:
        result = service.import_rows(access.issuer.id, rows, actor_id=access.user.user_id)
    except TransferError as exc:
        raise transfer_error_to_http(exc) from exc
    return ImportResultRead(imported=result.imported, transfer_ids=result.transfer_ids)


__all__ = ["router", "transfer_error_to_http"]
