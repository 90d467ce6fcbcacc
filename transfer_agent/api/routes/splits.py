"""Unit split ratio endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from transfer_agent.api.access import IssuerAccess, require_issuer_role
from transfer_agent.api.deps import get_db_session
from transfer_agent.schemas.split import SplitEventCreate, SplitEventRead
from transfer_agent.services.roles import READ_ONLY, TRANSFER_TEAM
from transfer_agent.services.splits import list_split_events, upsert_split_event
from transfer_agent.services.transfers import IssuerNotActiveError

router = APIRouter(prefix="/splits")


@router.get("/", response_model=list[SplitEventRead])
def list_splits(
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(READ_ONLY)),
) -> list[SplitEventRead]:
    return [SplitEventRead.model_validate(item) for item in list_split_events(session, access.issuer.id)]


@router.post("/", response_model=SplitEventRead, status_code=status.HTTP_201_CREATED)
def save_split(
    payload: SplitEventCreate,
    response: Response,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(TRANSFER_TEAM)),
) -> SplitEventRead:
    """Create or replace the issuer's ratio for ``transaction_type``."""
    try:
        event, created = upsert_split_event(
            session,
            access.issuer,
            transaction_type=payload.transaction_type,
            class_a_ratio=payload.class_a_ratio,
            rights_ratio=payload.rights_ratio,
        )
    except IssuerNotActiveError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if not created:
        response.status_code = status.HTTP_200_OK
    return SplitEventRead.model_validate(event)


__all__ = ["list_splits", "router", "save_split"]
