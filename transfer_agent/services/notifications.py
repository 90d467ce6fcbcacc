"""Broker request notifications and the in-app notification inbox."""
from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from transfer_agent.core.config import Settings, get_settings
from transfer_agent.models import Issuer, Notification, TransferRequest, TransferRequestComment, User
from transfer_agent.obs import NOTIFICATION_EMAIL_COUNTER
from transfer_agent.services.email import (
    EmailDeliveryError,
    EmailMessage,
    EmailSender,
    ResendEmailSender,
    render_email,
)
from transfer_agent.services.positions import DataFetchError
from transfer_agent.services.splits import warrants_label

logger = logging.getLogger(__name__)

REQUEST_SUBMITTED = "broker_request_submitted"
SPLIT_REQUEST_SUBMITTED = "broker_split_request"
REQUEST_STATUS_CHANGED = "broker_request_status_changed"
REQUEST_COMMENT_ADDED = "admin_comment_added"
TRANSFER_REQUEST_ENTITY = "transfer_request"
COMMENT_PREVIEW_LENGTH = 100


class NotificationError(RuntimeError):
    """Base exception for notification errors."""


class NotificationNotFoundError(NotificationError):
    """Raised when a notification does not exist for the requesting user."""


@dataclass(slots=True, frozen=True)
class FanOutSummary:
    notifications_created: int = 0
    emails_sent: int = 0
    emails_failed: int = 0


def _display_name(user: User) -> str:
    return user.name or user.email


class BrokerRequestNotifier:
    """Tell administrators about broker requests and brokers about decisions.

    Email delivery is throttled: only the first
    ``max_notification_emails`` administrators are emailed, one at a time,
    with ``notification_email_delay_seconds`` between sends. A failed send
    is counted and never stops the remaining sends.
    """

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        sender: EmailSender | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._sender = sender
        self._sleep = sleep

    @property
    def sender(self) -> EmailSender:
        if self._sender is None:
            self._sender = ResendEmailSender(self._settings)
        return self._sender

    def notify_request_submitted(
        self,
        request: TransferRequest,
        broker: User,
        issuer: Issuer,
        *,
        base_url: str | None = None,
    ) -> FanOutSummary:
        broker_name = _display_name(broker)
        return self._fan_out(
            request,
            issuer,
            kind=REQUEST_SUBMITTED,
            title=f"New Transfer Request #{request.request_number}",
            message=(
                f"{broker_name} submitted a {request.request_type} request for "
                f"{request.shareholder_name} ({request.quantity:,} shares)"
            ),
            template="request_submitted",
            base_url=base_url,
            broker_name=broker_name,
        )

    def notify_split_request_submitted(
        self,
        request: TransferRequest,
        broker: User,
        issuer: Issuer,
        *,
        base_url: str | None = None,
    ) -> FanOutSummary:
        """Fan a broker's unit split request out to the administrators."""

        broker_name = _display_name(broker)
        label = warrants_label(issuer)
        return self._fan_out(
            request,
            issuer,
            kind=SPLIT_REQUEST_SUBMITTED,
            title=f"New Broker Split Request #{request.request_number}",
            message=(
                f"{broker_name} (DTC #{request.dtc_participant_number}) submitted a split request: "
                f"{request.units_quantity:,} Units -> {request.class_a_quantity:,} Class A"
                f" + {request.warrants_quantity:,} {label}"
            ),
            template="split_request_submitted",
            base_url=base_url,
            broker_name=broker_name,
            broker_email=broker.email,
            warrants_label=label,
        )

    def notify_status_change(self, request: TransferRequest, *, admin: User | None) -> Notification | None:
        """Leave the broker an in-app note that their request was decided."""

        status_label = request.status.value.capitalize()
        decided_by = _display_name(admin) if admin is not None else "An administrator"
        message = f"{decided_by} marked your {request.request_type} request for {request.shareholder_name} as {status_label.lower()}"
        if request.status_note:
            message = f"{message}: {request.status_note}"
        return self._notify_broker(
            request,
            kind=REQUEST_STATUS_CHANGED,
            title=f"Request #{request.request_number} {status_label}",
            message=message,
        )

    def notify_comment(
        self, request: TransferRequest, comment: TransferRequestComment, *, author: User | None
    ) -> Notification | None:
        """Tell the broker that staff replied on their request."""

        preview = comment.message[:COMMENT_PREVIEW_LENGTH]
        if len(comment.message) > COMMENT_PREVIEW_LENGTH:
            preview = f"{preview}..."
        author_name = author.name if author is not None and author.name else "Admin"
        return self._notify_broker(
            request,
            kind=REQUEST_COMMENT_ADDED,
            title=f"New Comment on Request #{request.request_number}",
            message=f'{author_name} commented: "{preview}"',
        )

    def _fan_out(
        self,
        request: TransferRequest,
        issuer: Issuer,
        *,
        kind: str,
        title: str,
        message: str,
        template: str,
        base_url: str | None,
        **context: Any,
    ) -> FanOutSummary:
        try:
            admins = list(
                self._session.scalars(
                    select(User).where(User.is_super_admin.is_(True)).order_by(User.created_at, User.email)
                ).all()
            )
        except SQLAlchemyError as exc:
            logger.error("administrator lookup failed", extra={"request_id": request.id, "error": str(exc)})
            raise DataFetchError("Unable to load administrators") from exc

        if not admins:
            logger.warning("no administrators to notify", extra={"request_id": request.id})
            return FanOutSummary()

        base = (base_url or self._settings.app_base_url).rstrip("/")
        action_url = f"{base}/issuers/{issuer.id}/transfer-requests/{request.id}"
        created = self._insert_batch(
            [
                Notification(
                    user_id=admin.id,
                    type=kind,
                    title=title,
                    message=message,
                    entity_type=TRANSFER_REQUEST_ENTITY,
                    entity_id=request.id,
                    action_url=action_url,
                )
                for admin in admins
            ]
        )

        html, text = render_email(
            template,
            request=request,
            issuer_name=issuer.display_name or issuer.issuer_name,
            action_url=action_url,
            **context,
        )
        sent = failed = 0
        recipients = admins[: self._settings.max_notification_emails]
        for index, admin in enumerate(recipients):
            if index:
                self._sleep(self._settings.notification_email_delay_seconds)
            try:
                self.sender.send(EmailMessage(to=(admin.email,), subject=title, html=html, text=text))
            except Exception as exc:
                failed += 1
                NOTIFICATION_EMAIL_COUNTER.labels(outcome="failed").inc()
                log = logger.warning if isinstance(exc, EmailDeliveryError) else logger.exception
                log(
                    "notification email failed",
                    extra={"request_id": request.id, "recipient_id": admin.id, "error": str(exc)},
                )
            else:
                sent += 1
                NOTIFICATION_EMAIL_COUNTER.labels(outcome="sent").inc()

        summary = FanOutSummary(notifications_created=created, emails_sent=sent, emails_failed=failed)
        logger.info(
            "broker request fan-out complete",
            extra={
                "request_id": request.id,
                "kind": kind,
                "administrators": len(admins),
                "notifications_created": summary.notifications_created,
                "emails_sent": summary.emails_sent,
                "emails_failed": summary.emails_failed,
            },
        )
        return summary

    def _notify_broker(self, request: TransferRequest, *, kind: str, title: str, message: str) -> Notification | None:
        notification = Notification(
            user_id=request.broker_id,
            type=kind,
            title=title,
            message=message,
            entity_type=TRANSFER_REQUEST_ENTITY,
            entity_id=request.id,
            action_url=f"{self._settings.app_base_url.rstrip('/')}/transfer-requests/{request.id}",
        )
        return notification if self._insert_batch([notification]) else None

    def _insert_batch(self, rows: list[Notification]) -> int:
        try:
            with self._session.begin_nested():
                self._session.add_all(rows)
        except SQLAlchemyError as exc:
            logger.error("notification insert failed", extra={"rows": len(rows), "error": str(exc)})
            return 0
        return len(rows)


def list_notifications(
    session: Session, user_id: str, *, unread_only: bool = False, limit: int = 50
) -> list[Notification]:
    statement = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        statement = statement.where(Notification.is_read.is_(False))
    statement = statement.order_by(Notification.created_at.desc(), Notification.id).limit(limit)
    return list(session.scalars(statement).all())


def unread_count(session: Session, user_id: str) -> int:
    statement = select(func.count(Notification.id)).where(
        Notification.user_id == user_id, Notification.is_read.is_(False)
    )
    return int(session.scalar(statement) or 0)


def mark_read(session: Session, user_id: str, notification_id: str) -> Notification:
    notification = session.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotificationNotFoundError(f"Notification '{notification_id}' was not found")
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.now(UTC)
        session.commit()
        session.refresh(notification)
    return notification


def mark_all_read(session: Session, user_id: str) -> int:
    result = session.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True, read_at=datetime.now(UTC))
    )
    session.commit()
    return result.rowcount or 0


__all__ = [
    "BrokerRequestNotifier",
    "FanOutSummary",
    "NotificationError",
    "NotificationNotFoundError",
    "REQUEST_COMMENT_ADDED",
    "REQUEST_STATUS_CHANGED",
    "REQUEST_SUBMITTED",
    "SPLIT_REQUEST_SUBMITTED",
    "list_notifications",
    "mark_all_read",
    "mark_read",
    "unread_count",
]
