"""Securities, market values and restriction endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from transfer_agent.api.access import IssuerAccess, require_issuer_role
from transfer_agent.api.deps import get_db_session
from transfer_agent.api.routes.transfers import transfer_error_to_http
from transfer_agent.models import ManualRestriction, MarketValue, RestrictionTemplate, Security
from transfer_agent.schemas.security import (
    ManualRestrictionCreate,
    ManualRestrictionRead,
    MarketValueCreate,
    MarketValueRead,
    RestrictionTemplateCreate,
    RestrictionTemplateRead,
    RestrictionTemplateUpdate,
    SecurityCreate,
    SecurityRead,
)
from transfer_agent.services.roles import ADMIN, READ_ONLY, TRANSFER_TEAM
from transfer_agent.services.transfers import TransferError, TransferService

router = APIRouter()


def _commit_or_conflict(session: Session, detail: str) -> None:
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail) from exc


@router.get("/securities", response_model=list[SecurityRead])
def list_securities(
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(READ_ONLY)),
) -> list[SecurityRead]:
    statement = select(Security).where(Security.issuer_id == access.issuer.id).order_by(Security.cusip)
    return [SecurityRead.model_validate(item) for item in session.scalars(statement).all()]


@router.post("/securities", response_model=SecurityRead, status_code=status.HTTP_201_CREATED)
def create_security(
    payload: SecurityCreate,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(ADMIN)),
) -> SecurityRead:
    security = Security(issuer_id=access.issuer.id, **payload.model_dump())
    session.add(security)
    _commit_or_conflict(session, "Security with this CUSIP already exists")
    session.refresh(security)
    return SecurityRead.model_validate(security)


@router.get("/market-values", response_model=list[MarketValueRead])
def list_market_values(
    cusip: str | None = Query(default=None),
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(READ_ONLY)),
) -> list[MarketValueRead]:
    statement = select(MarketValue).where(MarketValue.issuer_id == access.issuer.id)
    if cusip is not None:
        statement = statement.where(MarketValue.cusip == cusip)
    statement = statement.order_by(MarketValue.cusip, MarketValue.valuation_date.desc())
    return [MarketValueRead.model_validate(item) for item in session.scalars(statement).all()]


@router.post("/market-values", response_model=MarketValueRead, status_code=status.HTTP_201_CREATED)
def create_market_value(
    payload: MarketValueCreate,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(TRANSFER_TEAM)),
) -> MarketValueRead:
    market_value = MarketValue(issuer_id=access.issuer.id, **payload.model_dump())
    session.add(market_value)
    _commit_or_conflict(session, "A valuation for this security and date already exists")
    session.refresh(market_value)
    return MarketValueRead.model_validate(market_value)


@router.get("/restrictions/templates", response_model=list[RestrictionTemplateRead])
def list_restriction_templates(
    include_inactive: bool = Query(default=False),
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(READ_ONLY)),
) -> list[RestrictionTemplateRead]:
    statement = select(RestrictionTemplate).where(RestrictionTemplate.issuer_id == access.issuer.id)
    if not include_inactive:
        statement = statement.where(RestrictionTemplate.is_active.is_(True))
    statement = statement.order_by(RestrictionTemplate.restriction_name)
    return [RestrictionTemplateRead.model_validate(item) for item in session.scalars(statement).all()]


@router.post(
    "/restrictions/templates",
    response_model=RestrictionTemplateRead,
    status_code=status.HTTP_201_CREATED,
)
def create_restriction_template(
    payload: RestrictionTemplateCreate,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(ADMIN)),
) -> RestrictionTemplateRead:
    template = RestrictionTemplate(issuer_id=access.issuer.id, **payload.model_dump())
    session.add(template)
    session.commit()
    session.refresh(template)
    return RestrictionTemplateRead.model_validate(template)


@router.patch("/restrictions/templates/{template_id}", response_model=RestrictionTemplateRead)
def update_restriction_template(
    template_id: str,
    payload: RestrictionTemplateUpdate,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(ADMIN)),
) -> RestrictionTemplateRead:
    template = session.get(RestrictionTemplate, template_id)
    if template is None or template.issuer_id != access.issuer.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Restriction not found")
    for field_name, value in payload.model_dump(exclude_unset=True).items():
        setattr(template, field_name, value)
    session.commit()
    session.refresh(template)
    return RestrictionTemplateRead.model_validate(template)


@router.get("/restrictions", response_model=list[ManualRestrictionRead])
def list_manual_restrictions(
    shareholder_id: str | None = Query(default=None),
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(READ_ONLY)),
) -> list[ManualRestrictionRead]:
    statement = select(ManualRestriction).where(ManualRestriction.issuer_id == access.issuer.id)
    if shareholder_id is not None:
        statement = statement.where(ManualRestriction.shareholder_id == shareholder_id)
    statement = statement.order_by(ManualRestriction.restriction_date.desc())
    return [ManualRestrictionRead.model_validate(item) for item in session.scalars(statement).all()]


@router.post("/restrictions", response_model=ManualRestrictionRead, status_code=status.HTTP_201_CREATED)
def create_manual_restriction(
    payload: ManualRestrictionCreate,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(TRANSFER_TEAM)),
) -> ManualRestrictionRead:
    service = TransferService(session)
    try:
        restriction = service.restrict_shares(
            issuer_id=access.issuer.id,
            actor_id=access.user.user_id,
            **payload.model_dump(),
        )
    except TransferError as exc:
        raise transfer_error_to_http(exc) from exc
    return ManualRestrictionRead.model_validate(restriction)


__all__ = ["router"]
