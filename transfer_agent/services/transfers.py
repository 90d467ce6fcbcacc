"""Posting journal entries and share transfers."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from transfer_agent.core.config import Settings, get_settings
from transfer_agent.db.session import serializable_transaction
from transfer_agent.models import (
    AuditLog,
    Issuer,
    IssuerStatus,
    ManualRestriction,
    RestrictionTemplate,
    Security,
    Shareholder,
    ShareholderPosition,
    Transfer,
)
from transfer_agent.obs import TRANSFERS_POSTED_COUNTER
from transfer_agent.services.positions import Direction, classify_direction, derive_positions

logger = logging.getLogger(__name__)

TRANSFER_DEBIT = "Transfer Debit"
TRANSFER_CREDIT = "Transfer Credit"


class TransferError(RuntimeError):
    """Base exception for transfer posting errors."""


class IssuerNotFoundError(TransferError):
    """Raised when the issuer does not exist."""


class IssuerNotActiveError(TransferError):
    """Raised when the issuer does not accept the requested write."""


class ShareholderNotFoundError(TransferError):
    """Raised when a shareholder is missing or belongs to another issuer."""


class SecurityNotFoundError(TransferError):
    """Raised when the CUSIP is not registered for the issuer."""


class RestrictionNotFoundError(TransferError):
    """Raised when a restriction template is missing or belongs to another issuer."""


class InvalidTransferError(TransferError):
    """Raised for malformed postings such as a transfer to the same account."""


class InsufficientSharesError(TransferError):
    """Raised when a debit exceeds the derived balance."""

    def __init__(self, *, available: int, requested: int) -> None:
        super().__init__(f"Insufficient shares: {available} available, {requested} requested")
        self.available = available
        self.requested = requested


@dataclass(slots=True, frozen=True)
class TransferResult:
    debit: Transfer
    credit: Transfer


def _effective(transaction_date: datetime | None) -> datetime:
    return transaction_date or datetime.now(UTC)


def _naive_utc(value: datetime) -> datetime:
    # SQLite hands back naive UTC timestamps.
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


class TransferService:
    """Write side of the journal.

    Every posting runs in one SERIALIZABLE transaction covering the balance
    check, the journal rows, the balance snapshots and the audit entry.
    """

    def __init__(self, session: Session, *, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()

    def record_transaction(
        self,
        *,
        issuer_id: str,
        shareholder_id: str,
        cusip: str,
        transaction_type: str,
        share_quantity: int,
        transaction_date: datetime | None = None,
        restriction_id: str | None = None,
        notes: str | None = None,
        actor_id: str | None = None,
    ) -> Transfer:
        """Append one journal entry, such as an issuance or a DWAC movement."""

        _require_positive(share_quantity)
        direction = classify_direction(transaction_type, strict=self._settings.strict_transaction_types)
        effective = _effective(transaction_date)

        with serializable_transaction(self._session):
            issuer = self._writable_issuer(issuer_id, allow_pending=True)
            self._shareholder(issuer_id, shareholder_id)
            self._security(issuer_id, cusip)
            if restriction_id is not None:
                self._restriction(issuer_id, restriction_id)
            if direction is Direction.DEBIT:
                self._ensure_available(issuer_id, shareholder_id, cusip, share_quantity, effective)

            transfer = self._append(
                issuer_id=issuer_id,
                shareholder_id=shareholder_id,
                cusip=cusip,
                transaction_type=transaction_type,
                share_quantity=share_quantity,
                transaction_date=effective,
                restriction_id=restriction_id,
                notes=notes,
                actor_id=actor_id,
            )
            self._apply_to_snapshot(issuer_id, shareholder_id, cusip, int(direction) * share_quantity)
            if issuer.status is IssuerStatus.PENDING:
                issuer.status = IssuerStatus.ACTIVE
                logger.info("issuer activated by first journal entry", extra={"issuer_id": issuer_id})
            self._audit(
                issuer_id,
                actor_id,
                action="transaction.recorded",
                resource_type="transfer",
                resource_id=transfer.id,
                payload={
                    "shareholder_id": shareholder_id,
                    "cusip": cusip,
                    "transaction_type": transaction_type,
                    "share_quantity": share_quantity,
                },
            )
            self._session.flush()

        TRANSFERS_POSTED_COUNTER.labels(kind="transaction").inc()
        self._session.refresh(transfer)
        logger.info(
            "journal entry recorded",
            extra={"issuer_id": issuer_id, "transfer_id": transfer.id, "transaction_type": transaction_type},
        )
        return transfer

    def post_transfer(
        self,
        *,
        issuer_id: str,
        from_shareholder_id: str,
        to_shareholder_id: str,
        cusip: str,
        share_quantity: int,
        transaction_date: datetime | None = None,
        notes: str | None = None,
        actor_id: str | None = None,
    ) -> TransferResult:
        """Move shares between two accounts as a debit and a matching credit."""

        if from_shareholder_id == to_shareholder_id:
            raise InvalidTransferError("Cannot transfer shares to the same shareholder")
        _require_positive(share_quantity)
        effective = _effective(transaction_date)

        with serializable_transaction(self._session):
            self._writable_issuer(issuer_id, allow_pending=False)
            self._shareholder(issuer_id, from_shareholder_id)
            self._shareholder(issuer_id, to_shareholder_id)
            self._security(issuer_id, cusip)
            self._ensure_available(issuer_id, from_shareholder_id, cusip, share_quantity, effective)

            debit = self._append(
                issuer_id=issuer_id,
                shareholder_id=from_shareholder_id,
                cusip=cusip,
                transaction_type=TRANSFER_DEBIT,
                share_quantity=share_quantity,
                transaction_date=effective,
                notes=notes,
                actor_id=actor_id,
            )
            credit = self._append(
                issuer_id=issuer_id,
                shareholder_id=to_shareholder_id,
                cusip=cusip,
                transaction_type=TRANSFER_CREDIT,
                share_quantity=share_quantity,
                transaction_date=effective,
                notes=notes,
                actor_id=actor_id,
            )
            self._apply_to_snapshot(issuer_id, from_shareholder_id, cusip, -share_quantity)
            self._apply_to_snapshot(issuer_id, to_shareholder_id, cusip, share_quantity)
            self._audit(
                issuer_id,
                actor_id,
                action="transfer.posted",
                resource_type="transfer",
                resource_id=debit.id,
                payload={
                    "from_shareholder_id": from_shareholder_id,
                    "to_shareholder_id": to_shareholder_id,
                    "cusip": cusip,
                    "share_quantity": share_quantity,
                    "credit_id": credit.id,
                },
            )
            self._session.flush()

        TRANSFERS_POSTED_COUNTER.labels(kind="transfer").inc()
        self._session.refresh(debit)
        self._session.refresh(credit)
        logger.info(
            "transfer posted",
            extra={
                "issuer_id": issuer_id,
                "debit_id": debit.id,
                "credit_id": credit.id,
                "share_quantity": share_quantity,
            },
        )
        return TransferResult(debit=debit, credit=credit)

    def restrict_shares(
        self,
        *,
        issuer_id: str,
        shareholder_id: str,
        cusip: str,
        restricted_shares: int,
        restriction_id: str | None = None,
        restriction_date: datetime | None = None,
        notes: str | None = None,
        actor_id: str | None = None,
    ) -> ManualRestriction:
        """Place a manual restriction on shares outside of a journal entry."""

        _require_positive(restricted_shares)
        with serializable_transaction(self._session):
            self._writable_issuer(issuer_id, allow_pending=True)
            self._shareholder(issuer_id, shareholder_id)
            self._security(issuer_id, cusip)
            if restriction_id is not None:
                self._restriction(issuer_id, restriction_id)
            restriction = ManualRestriction(
                issuer_id=issuer_id,
                shareholder_id=shareholder_id,
                cusip=cusip,
                restriction_id=restriction_id,
                restricted_shares=restricted_shares,
                restriction_date=_effective(restriction_date),
                notes=notes,
            )
            self._session.add(restriction)
            self._session.flush()
            self._audit(
                issuer_id,
                actor_id,
                action="restriction.added",
                resource_type="manual_restriction",
                resource_id=restriction.id,
                payload={"shareholder_id": shareholder_id, "cusip": cusip, "restricted_shares": restricted_shares},
            )

        self._session.refresh(restriction)
        return restriction

    def _writable_issuer(self, issuer_id: str, *, allow_pending: bool) -> Issuer:
        issuer = self._session.get(Issuer, issuer_id)
        if issuer is None:
            raise IssuerNotFoundError(f"Issuer '{issuer_id}' was not found")
        if issuer.status is IssuerStatus.SUSPENDED:
            raise IssuerNotActiveError(f"Issuer '{issuer.issuer_name}' is suspended and read-only")
        if issuer.status is IssuerStatus.PENDING and not allow_pending:
            raise IssuerNotActiveError(f"Issuer '{issuer.issuer_name}' is still onboarding")
        return issuer

    def _shareholder(self, issuer_id: str, shareholder_id: str) -> Shareholder:
        shareholder = self._session.get(Shareholder, shareholder_id)
        if shareholder is None or shareholder.issuer_id != issuer_id:
            raise ShareholderNotFoundError(f"Shareholder '{shareholder_id}' was not found")
        return shareholder

    def _security(self, issuer_id: str, cusip: str) -> Security:
        security = self._session.scalar(
            select(Security).where(Security.issuer_id == issuer_id, Security.cusip == cusip)
        )
        if security is None:
            raise SecurityNotFoundError(f"Security '{cusip}' is not registered for this issuer")
        return security

    def _restriction(self, issuer_id: str, restriction_id: str) -> RestrictionTemplate:
        template = self._session.get(RestrictionTemplate, restriction_id)
        if template is None or template.issuer_id != issuer_id:
            raise RestrictionNotFoundError(f"Restriction '{restriction_id}' was not found")
        return template

    def _ensure_available(
        self,
        issuer_id: str,
        shareholder_id: str,
        cusip: str,
        requested: int,
        effective: datetime,
    ) -> None:
        """Reject a debit that takes the holding negative on its date or at any later entry."""

        positions = derive_positions(
            self._session,
            issuer_id,
            as_of=date.max,
            shareholder_id=shareholder_id,
            settings=self._settings,
        )
        cutoff = _naive_utc(effective)
        balance_on_date = 0
        later_balances: list[int] = []
        for position in positions.ledger(shareholder_id):
            if position.cusip != cusip:
                continue
            for line in position.lines:
                if _naive_utc(line.transaction_date) <= cutoff:
                    balance_on_date = line.running_balance
                else:
                    later_balances.append(line.running_balance)

        available = min([balance_on_date, *later_balances])
        if requested > available:
            raise InsufficientSharesError(available=max(available, 0), requested=requested)

    def _append(
        self,
        *,
        issuer_id: str,
        shareholder_id: str,
        cusip: str,
        transaction_type: str,
        share_quantity: int,
        transaction_date: datetime,
        restriction_id: str | None = None,
        notes: str | None = None,
        actor_id: str | None = None,
    ) -> Transfer:
        transfer = Transfer(
            issuer_id=issuer_id,
            shareholder_id=shareholder_id,
            cusip=cusip,
            transaction_type=transaction_type,
            share_quantity=share_quantity,
            transaction_date=transaction_date,
            restriction_id=restriction_id,
            created_by=actor_id,
            notes=notes,
        )
        self._session.add(transfer)
        self._session.flush()
        return transfer

    def _apply_to_snapshot(self, issuer_id: str, shareholder_id: str, cusip: str, delta: int) -> None:
        apply_position_delta(self._session, issuer_id, shareholder_id, cusip, delta)

    def _audit(
        self,
        issuer_id: str,
        actor_id: str | None,
        *,
        action: str,
        resource_type: str,
        resource_id: str,
        payload: dict,
    ) -> None:
        self._session.add(
            AuditLog(
                issuer_id=issuer_id,
                actor_id=actor_id,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                payload=payload,
            )
        )


def apply_position_delta(
    session: Session, issuer_id: str, shareholder_id: str, cusip: str, delta: int
) -> ShareholderPosition:
    """Adjust the stored balance snapshot for one holding, creating it if needed."""

    snapshot = session.scalar(
        select(ShareholderPosition).where(
            ShareholderPosition.shareholder_id == shareholder_id,
            ShareholderPosition.cusip == cusip,
        )
    )
    if snapshot is None:
        snapshot = ShareholderPosition(
            issuer_id=issuer_id, shareholder_id=shareholder_id, cusip=cusip, shares_owned=0
        )
        session.add(snapshot)
    snapshot.shares_owned += delta
    return snapshot


def _require_positive(quantity: int) -> None:
    if quantity <= 0:
        raise InvalidTransferError("Share quantity must be a positive whole number")


__all__ = [
    "InsufficientSharesError",
    "InvalidTransferError",
    "IssuerNotActiveError",
    "IssuerNotFoundError",
    "RestrictionNotFoundError",
    "SecurityNotFoundError",
    "ShareholderNotFoundError",
    "TRANSFER_CREDIT",
    "TRANSFER_DEBIT",
    "TransferError",
    "TransferResult",
    "TransferService",
    "apply_position_delta",
]
