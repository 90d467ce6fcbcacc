"""Issuer management endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from transfer_agent.api.access import IssuerAccess, require_issuer_role
from transfer_agent.api.deps import get_db_session, get_role_resolver
from transfer_agent.api.routes.auth import AuthenticatedUser, get_current_user, require_role
from transfer_agent.models import Issuer
from transfer_agent.schemas.issuer import IssuerCreate, IssuerDeleteRequest, IssuerRead, IssuerUpdate
from transfer_agent.services.roles import ADMIN, READ_ONLY, RoleResolver

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=list[IssuerRead])
def list_issuers(
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
    resolver: RoleResolver = Depends(get_role_resolver),
) -> list[IssuerRead]:
    statement = select(Issuer).order_by(Issuer.issuer_name)
    issuer_ids = resolver.issuer_ids(user.email)
    if issuer_ids is not None:
        statement = statement.where(Issuer.id.in_(issuer_ids))
    return [IssuerRead.model_validate(item) for item in session.scalars(statement).all()]


@router.post("/", response_model=IssuerRead, status_code=status.HTTP_201_CREATED)
def create_issuer(
    payload: IssuerCreate,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("superadmin")),
) -> IssuerRead:
    issuer = Issuer(**payload.model_dump())
    session.add(issuer)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Issuer with this name already exists",
        ) from exc
    session.refresh(issuer)
    logger.info("issuer created", extra={"issuer_id": issuer.id, "actor": user.email})
    return IssuerRead.model_validate(issuer)


@router.get("/{issuer_id}", response_model=IssuerRead)
def get_issuer(access: IssuerAccess = Depends(require_issuer_role(READ_ONLY))) -> IssuerRead:
    return IssuerRead.model_validate(access.issuer)


@router.patch("/{issuer_id}", response_model=IssuerRead)
def update_issuer(
    payload: IssuerUpdate,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(ADMIN)),
) -> IssuerRead:
    issuer = access.issuer
    for field_name, value in payload.model_dump(exclude_unset=True).items():
        setattr(issuer, field_name, value)
    session.commit()
    session.refresh(issuer)
    return IssuerRead.model_validate(issuer)


@router.delete("/{issuer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_issuer(
    issuer_id: str,
    payload: IssuerDeleteRequest,
    request: Request,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("superadmin")),
) -> None:
    issuer = session.get(Issuer, issuer_id)
    if issuer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Issuer not found")
    request.state.issuer_id = issuer_id
    if payload.confirmation != issuer.issuer_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Confirmation text does not match the issuer name",
        )
    session.delete(issuer)
    session.commit()
    logger.warning("issuer deleted", extra={"issuer_id": issuer_id, "actor": user.email})


__all__ = [
    "create_issuer",
    "delete_issuer",
    "get_issuer",
    "list_issuers",
    "router",
    "update_issuer",
]
