"""In-app notification inbox endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from transfer_agent.api.deps import get_db_session
from transfer_agent.api.routes.auth import AuthenticatedUser, get_current_user
from transfer_agent.schemas.notification import NotificationRead, UnreadCount
from transfer_agent.services.notifications import (
    NotificationNotFoundError,
    list_notifications,
    mark_all_read,
    mark_read,
    unread_count,
)

router = APIRouter()


def _user_id(user: AuthenticatedUser) -> str:
    if user.user_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No inbox for this account")
    return user.user_id


@router.get("/", response_model=list[NotificationRead])
def inbox(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> list[NotificationRead]:
    rows = list_notifications(session, _user_id(user), unread_only=unread_only, limit=limit)
    return [NotificationRead.model_validate(row) for row in rows]


@router.get("/unread-count", response_model=UnreadCount)
def get_unread_count(
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> UnreadCount:
    return UnreadCount(unread=unread_count(session, _user_id(user)))


@router.post("/{notification_id}/read", response_model=NotificationRead)
def read_notification(
    notification_id: str,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> NotificationRead:
    try:
        notification = mark_read(session, _user_id(user), notification_id)
    except NotificationNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return NotificationRead.model_validate(notification)


@router.post("/read-all", response_model=UnreadCount)
def read_all_notifications(
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(get_current_user),
) -> UnreadCount:
    user_id = _user_id(user)
    mark_all_read(session, user_id)
    return UnreadCount(unread=unread_count(session, user_id))


__all__ = ["get_unread_count", "inbox", "read_all_notifications", "read_notification", "router"]
