"""Broker transfer request endpoints."""
from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from transfer_agent.api.access import IssuerAccess, require_issuer_role
from transfer_agent.api.deps import get_db_session, get_role_resolver
from transfer_agent.api.routes.auth import AuthenticatedUser, get_current_user
from transfer_agent.db.session import serializable_transaction
from transfer_agent.models import (
    Issuer,
    IssuerStatus,
    TransferRequest,
    TransferRequestComment,
    TransferRequestStatus,
    User,
)
from transfer_agent.schemas.transfer_request import (
    BrokerSplitRequestCreate,
    CommentCreate,
    CommentRead,
    FanOutSummaryRead,
    TransferRequestCreate,
    TransferRequestRead,
    TransferRequestStatusUpdate,
    TransferRequestSubmitted,
)
from transfer_agent.services.notifications import BrokerRequestNotifier, FanOutSummary
from transfer_agent.services.positions import DataFetchError
from transfer_agent.services.roles import ADMIN, BROKER, TRANSFER_TEAM, RoleResolver, has_permission
from transfer_agent.services.splits import SplitRatioMissingError, resolve_split_quantities, warrants_label

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transfer-requests")

BROKER_SPLIT_HOLDER = "N/A - Broker Request"


def get_notifier(session: Session = Depends(get_db_session)) -> BrokerRequestNotifier:
    return BrokerRequestNotifier(session)


def _load_issuer(session: Session, issuer_id: str) -> Issuer:
    issuer = session.get(Issuer, issuer_id)
    if issuer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Issuer not found")
    return issuer


def _load_request(session: Session, issuer: Issuer, request_id: str) -> TransferRequest:
    transfer_request = session.get(TransferRequest, request_id)
    if transfer_request is None or transfer_request.issuer_id != issuer.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transfer request not found")
    return transfer_request


def _require_broker(resolver: RoleResolver, user: AuthenticatedUser) -> User:
    broker = resolver.user(user.email)
    if broker is None or not has_permission(resolver.global_role(user.email), BROKER):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    return broker


def _next_request_number(session: Session, issuer_id: str) -> int:
    last_number = session.scalar(
        select(func.max(TransferRequest.request_number)).where(TransferRequest.issuer_id == issuer_id)
    )
    return (last_number or 0) + 1


def _announce(
    session: Session, transfer_request: TransferRequest, fan_out: Callable[[], FanOutSummary]
) -> TransferRequestSubmitted:
    session.refresh(transfer_request)
    logger.info(
        "transfer request submitted",
        extra={
            "issuer_id": transfer_request.issuer_id,
            "request_id": transfer_request.id,
            "request_number": transfer_request.request_number,
        },
    )
    try:
        summary = fan_out()
    except DataFetchError as exc:
        # The request itself is already stored; only the fan-out is lost.
        logger.error("notification fan-out failed", extra={"request_id": transfer_request.id, "error": str(exc)})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    session.commit()

    return TransferRequestSubmitted(
        request=TransferRequestRead.model_validate(transfer_request),
        notifications=FanOutSummaryRead.model_validate(summary),
    )


@router.post("/", response_model=TransferRequestSubmitted, status_code=status.HTTP_201_CREATED)
def submit_transfer_request(
    issuer_id: str,
    payload: TransferRequestCreate,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
    resolver: RoleResolver = Depends(get_role_resolver),
    notifier: BrokerRequestNotifier = Depends(get_notifier),
) -> TransferRequestSubmitted:
    issuer = _load_issuer(session, issuer_id)
    broker = _require_broker(resolver, user)

    with serializable_transaction(session):
        transfer_request = TransferRequest(
            issuer_id=issuer.id,
            broker_id=broker.id,
            request_number=_next_request_number(session, issuer.id),
            **payload.model_dump(),
        )
        session.add(transfer_request)

    return _announce(
        session, transfer_request, lambda: notifier.notify_request_submitted(transfer_request, broker, issuer)
    )


@router.post("/broker-split", response_model=TransferRequestSubmitted, status_code=status.HTTP_201_CREATED)
def submit_split_request(
    issuer_id: str,
    payload: BrokerSplitRequestCreate,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
    resolver: RoleResolver = Depends(get_role_resolver),
    notifier: BrokerRequestNotifier = Depends(get_notifier),
) -> TransferRequestSubmitted:
    """Ask the transfer team to separate units held at DTC.

    Only active issuers accept split requests. Class A and warrant
    quantities left out of the payload come from the separation ratio.
    """
    issuer = _load_issuer(session, issuer_id)
    broker = _require_broker(resolver, user)
    if issuer.status is not IssuerStatus.ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Issuer is {issuer.status.value.lower()} and does not accept split requests",
        )
    try:
        quantities = resolve_split_quantities(
            session,
            issuer.id,
            payload.units_quantity,
            class_a=payload.class_a_quantity,
            warrants=payload.warrants_quantity,
        )
    except SplitRatioMissingError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    label = warrants_label(issuer)

    with serializable_transaction(session):
        transfer_request = TransferRequest(
            issuer_id=issuer.id,
            broker_id=broker.id,
            request_number=_next_request_number(session, issuer.id),
            request_type=payload.request_type,
            shareholder_name=BROKER_SPLIT_HOLDER,
            account_number=payload.dtc_participant_number,
            cusip=payload.units_cusip,
            quantity=payload.units_quantity,
            security_type="Units",
            priority=payload.priority,
            special_instructions=payload.notes,
            dtc_participant_number=payload.dtc_participant_number,
            dwac_submitted=payload.dwac_submitted,
            units_quantity=payload.units_quantity,
            class_a_quantity=quantities.class_a,
            warrants_quantity=quantities.warrants,
            units_cusip=payload.units_cusip,
            class_a_cusip=payload.class_a_cusip,
            warrants_cusip=payload.warrants_cusip,
        )
        transfer_request.comments.append(
            TransferRequestComment(
                user_id=broker.id,
                message=(
                    f"Submitted broker split request for review. "
                    f"DTC Participant #: {payload.dtc_participant_number}. "
                    f"Units: {payload.units_quantity:,}, Class A: {quantities.class_a:,}, "
                    f"{label}: {quantities.warrants:,}."
                ),
            )
        )
        session.add(transfer_request)

    return _announce(
        session,
        transfer_request,
        lambda: notifier.notify_split_request_submitted(transfer_request, broker, issuer),
    )


@router.get("/", response_model=list[TransferRequestRead])
def list_transfer_requests(
    issuer_id: str,
    request_status: TransferRequestStatus | None = Query(default=None, alias="status"),
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
    resolver: RoleResolver = Depends(get_role_resolver),
) -> list[TransferRequestRead]:
    issuer = _load_issuer(session, issuer_id)
    statement = select(TransferRequest).where(TransferRequest.issuer_id == issuer.id)

    if not has_permission(resolver.issuer_role(user.email, issuer.id), TRANSFER_TEAM):
        broker = resolver.user(user.email)
        if broker is None or resolver.global_role(user.email) != BROKER:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        statement = statement.where(TransferRequest.broker_id == broker.id)

    if request_status is not None:
        statement = statement.where(TransferRequest.status == request_status)
    statement = statement.order_by(TransferRequest.request_number.desc())
    return [TransferRequestRead.model_validate(item) for item in session.scalars(statement).all()]


@router.patch("/{request_id}", response_model=TransferRequestRead)
def update_transfer_request_status(
    request_id: str,
    payload: TransferRequestStatusUpdate,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(ADMIN)),
    resolver: RoleResolver = Depends(get_role_resolver),
    notifier: BrokerRequestNotifier = Depends(get_notifier),
) -> TransferRequestRead:
    transfer_request = _load_request(session, access.issuer, request_id)
    if transfer_request.status is not TransferRequestStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Transfer request is already {transfer_request.status.value.lower()}",
        )

    transfer_request.status = TransferRequestStatus(payload.status)
    transfer_request.status_note = payload.note
    session.flush()
    notifier.notify_status_change(transfer_request, admin=resolver.user(access.user.email))
    session.commit()
    session.refresh(transfer_request)
    logger.info(
        "transfer request decided",
        extra={"request_id": transfer_request.id, "status": transfer_request.status.value},
    )
    return TransferRequestRead.model_validate(transfer_request)


def _comment_author(
    resolver: RoleResolver, user: AuthenticatedUser, issuer: Issuer, transfer_request: TransferRequest
) -> tuple[User | None, bool]:
    """Return the caller and whether they act as transfer-team staff on the request.

    Brokers other than the one who submitted the request are refused.
    """
    if has_permission(resolver.issuer_role(user.email, issuer.id), TRANSFER_TEAM):
        return resolver.user(user.email), True
    broker = resolver.user(user.email)
    if broker is None or broker.id != transfer_request.broker_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    return broker, False


@router.get("/{request_id}/comments", response_model=list[CommentRead])
def list_comments(
    issuer_id: str,
    request_id: str,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
    resolver: RoleResolver = Depends(get_role_resolver),
) -> list[CommentRead]:
    issuer = _load_issuer(session, issuer_id)
    transfer_request = _load_request(session, issuer, request_id)
    _, staff = _comment_author(resolver, user, issuer, transfer_request)

    statement = select(TransferRequestComment).where(TransferRequestComment.request_id == transfer_request.id)
    if not staff:
        statement = statement.where(TransferRequestComment.is_internal.is_(False))
    statement = statement.order_by(TransferRequestComment.created_at, TransferRequestComment.id)
    return [CommentRead.model_validate(item) for item in session.scalars(statement).all()]


@router.post("/{request_id}/comments", response_model=CommentRead, status_code=status.HTTP_201_CREATED)
def add_comment(
    issuer_id: str,
    request_id: str,
    payload: CommentCreate,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
    resolver: RoleResolver = Depends(get_role_resolver),
    notifier: BrokerRequestNotifier = Depends(get_notifier),
) -> CommentRead:
    """Post a message on a request; staff replies visible to the broker notify them."""
    issuer = _load_issuer(session, issuer_id)
    transfer_request = _load_request(session, issuer, request_id)
    author, staff = _comment_author(resolver, user, issuer, transfer_request)

    comment = TransferRequestComment(
        request_id=transfer_request.id,
        user_id=author.id if author is not None else None,
        message=payload.message,
        is_internal=payload.is_internal and staff,
    )
    session.add(comment)
    session.flush()
    if staff and not comment.is_internal:
        notifier.notify_comment(transfer_request, comment, author=author)
    session.commit()
    session.refresh(comment)
    logger.info(
        "transfer request comment added",
        extra={"request_id": transfer_request.id, "comment_id": comment.id, "internal": comment.is_internal},
    )
    return CommentRead.model_validate(comment)


__all__ = [
    "BROKER_SPLIT_HOLDER",
    "add_comment",
    "get_notifier",
    "list_comments",
    "list_transfer_requests",
    "router",
    "submit_split_request",
    "submit_transfer_request",
    "update_transfer_request_status",
]
