"""Position derivation from the transfer journal and restriction registry.

Holdings are never stored for reads: every consumer (statements, shareholder
detail, ownership rollups and the posting balance check) recomputes them here
from the append-only journal as of a cutoff date.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import IntEnum
from typing import ContextManager, Protocol, TypeVar

from sqlalchemy import select, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from transfer_agent.core.config import Settings, get_settings
from transfer_agent.db.session import in_serializable_transaction
from transfer_agent.models import ManualRestriction, RestrictionTemplate, Security, Transfer
from transfer_agent.obs import POSITION_DERIVATION_SECONDS, traced

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class PositionError(RuntimeError):
    """Base exception for position derivation errors."""


class DataFetchError(PositionError):
    """Raised when the ledger could not be read."""


class UnknownTransactionTypeError(PositionError):
    """Raised in strict mode for a transaction type that is neither debit nor credit."""

    def __init__(self, transaction_type: str | None) -> None:
        super().__init__(f"Unknown transaction type: {transaction_type!r}")
        self.transaction_type = transaction_type


class Direction(IntEnum):
    CREDIT = 1
    DEBIT = -1


DEBIT_TRANSACTION_TYPES: tuple[str, ...] = ("DWAC Withdrawal", "Transfer Debit", "Debit")
CREDIT_TRANSACTION_TYPES: tuple[str, ...] = (
    "IPO",
    "DWAC Deposit",
    "Transfer Credit",
    "Credit",
    "Issuance",
    "Original Issuance",
    "Split Credit",
)

_DEBIT_MARKERS = tuple(value.lower() for value in DEBIT_TRANSACTION_TYPES)
_KNOWN_CREDITS = frozenset(value.lower() for value in CREDIT_TRANSACTION_TYPES)


def classify_direction(transaction_type: str | None, *, strict: bool = False) -> Direction:
    """Return whether a journal row adds to or removes from a balance.

    A type containing ``"Debit"`` or ``"DWAC Withdrawal"``, in any letter
    case, is a debit, so ``"Transfer Debit"`` is one and a bare
    ``"Withdrawal"`` is not. Everything else is a credit, including missing
    types, unless ``strict`` is set, in which case types outside
    ``CREDIT_TRANSACTION_TYPES`` are rejected.
    """

    normalized = (transaction_type or "").strip().lower()
    if any(marker in normalized for marker in _DEBIT_MARKERS):
        return Direction.DEBIT
    if normalized not in _KNOWN_CREDITS:
        if strict:
            raise UnknownTransactionTypeError(transaction_type)
        logger.warning(
            "unrecognised transaction type treated as credit",
            extra={"transaction_type": transaction_type},
        )
    return Direction.CREDIT


@dataclass(slots=True, frozen=True)
class TransferEntry:
    id: str
    shareholder_id: str
    cusip: str
    transaction_type: str | None
    share_quantity: int
    transaction_date: datetime
    created_at: datetime | None = None
    restriction_id: str | None = None


@dataclass(slots=True, frozen=True)
class ManualRestrictionEntry:
    id: str
    shareholder_id: str
    cusip: str
    restricted_shares: int
    restriction_date: datetime
    restriction_id: str | None = None


@dataclass(slots=True, frozen=True)
class RestrictionTemplateEntry:
    id: str
    restriction_type: str
    restriction_name: str
    description: str | None = None
    is_active: bool = True


@dataclass(slots=True, frozen=True)
class SecurityEntry:
    cusip: str
    issue_name: str
    class_name: str | None = None


@dataclass(slots=True, frozen=True)
class LedgerLine:
    """One journal row with the balance of its holding after applying it."""

    transfer_id: str
    transaction_date: datetime
    transaction_type: str | None
    direction: Direction
    share_quantity: int
    running_balance: int

    @property
    def signed_quantity(self) -> int:
        return int(self.direction) * self.share_quantity


@dataclass(slots=True, frozen=True)
class Position:
    """Derived holding of one shareholder in one security."""

    shareholder_id: str
    cusip: str
    shares_outstanding: int
    restricted_shares: int
    restrictions: tuple[RestrictionTemplateEntry, ...]
    security_name: str | None
    security_type: str | None
    lines: tuple[LedgerLine, ...] = ()


@dataclass(slots=True, frozen=True)
class PositionSet:
    """Every derived position of an issuer (or one shareholder) as of a date."""

    issuer_id: str
    as_of: date
    positions: tuple[Position, ...]

    def holdings(self, shareholder_id: str | None = None) -> list[Position]:
        """Positions with a positive balance, as shown on statements and rollups."""
        return [
            position
            for position in self.ledger(shareholder_id)
            if position.shares_outstanding > 0
        ]

    def ledger(self, shareholder_id: str | None = None) -> list[Position]:
        """All positions, including closed or negative ones, with their history."""
        if shareholder_id is None:
            return list(self.positions)
        return [position for position in self.positions if position.shareholder_id == shareholder_id]

    def shareholder_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for position in self.positions:
            seen.setdefault(position.shareholder_id, None)
        return list(seen)


class LedgerSource(Protocol):
    """Read access to the journal and restriction registry of an issuer.

    Transfers are returned ordered by ``(transaction_date, created_at, id)``.
    """

    def snapshot(self) -> ContextManager[None]:
        ...

    def fetch_transfers(
        self, issuer_id: str, *, cutoff: datetime, shareholder_id: str | None = None
    ) -> Sequence[TransferEntry]:
        ...

    def fetch_manual_restrictions(
        self, issuer_id: str, *, cutoff: datetime, shareholder_id: str | None = None
    ) -> Sequence[ManualRestrictionEntry]:
        ...

    def fetch_restriction_templates(
        self, issuer_id: str, template_ids: Iterable[str]
    ) -> Sequence[RestrictionTemplateEntry]:
        ...

    def fetch_securities(self, issuer_id: str) -> Sequence[SecurityEntry]:
        ...


class SqlLedgerSource:
    """``LedgerSource`` backed by the relational store."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self._reader: Session | Connection = session

    @contextmanager
    def snapshot(self) -> Iterator[None]:
        """Read every query of one derivation from a single snapshot.

        On PostgreSQL the reads run on a dedicated connection inside a
        REPEATABLE READ READ ONLY transaction, whatever the session has
        already read. Inside a serializable posting the posting's own
        transaction is reused so the balance check sees its snapshot.
        """

        bind = self._session.get_bind()
        if bind.dialect.name != "postgresql" or in_serializable_transaction(self._session):
            yield
            return

        connection = self._run(bind.engine.connect)
        try:
            with connection.begin():
                self._run(
                    lambda: connection.execute(text("SET TRANSACTION ISOLATION LEVEL REPEATABLE READ READ ONLY"))
                )
                self._reader = connection
                yield
        finally:
            self._reader = self._session
            connection.close()

    def fetch_transfers(
        self, issuer_id: str, *, cutoff: datetime, shareholder_id: str | None = None
    ) -> list[TransferEntry]:
        statement = (
            select(
                Transfer.id,
                Transfer.shareholder_id,
                Transfer.cusip,
                Transfer.transaction_type,
                Transfer.share_quantity,
                Transfer.transaction_date,
                Transfer.created_at,
                Transfer.restriction_id,
            )
            .where(Transfer.issuer_id == issuer_id, Transfer.transaction_date <= cutoff)
            .order_by(Transfer.transaction_date, Transfer.created_at, Transfer.id)
        )
        if shareholder_id is not None:
            statement = statement.where(Transfer.shareholder_id == shareholder_id)
        rows = self._run(lambda: self._reader.execute(statement).all())
        return [TransferEntry(*row) for row in rows]

    def fetch_manual_restrictions(
        self, issuer_id: str, *, cutoff: datetime, shareholder_id: str | None = None
    ) -> list[ManualRestrictionEntry]:
        statement = (
            select(
                ManualRestriction.id,
                ManualRestriction.shareholder_id,
                ManualRestriction.cusip,
                ManualRestriction.restricted_shares,
                ManualRestriction.restriction_date,
                ManualRestriction.restriction_id,
            )
            .where(
                ManualRestriction.issuer_id == issuer_id,
                ManualRestriction.restriction_date <= cutoff,
            )
            .order_by(ManualRestriction.restriction_date, ManualRestriction.id)
        )
        if shareholder_id is not None:
            statement = statement.where(ManualRestriction.shareholder_id == shareholder_id)
        rows = self._run(lambda: self._reader.execute(statement).all())
        return [ManualRestrictionEntry(*row) for row in rows]

    def fetch_restriction_templates(
        self, issuer_id: str, template_ids: Iterable[str]
    ) -> list[RestrictionTemplateEntry]:
        ids = list(template_ids)
        if not ids:
            return []
        statement = select(
            RestrictionTemplate.id,
            RestrictionTemplate.restriction_type,
            RestrictionTemplate.restriction_name,
            RestrictionTemplate.description,
            RestrictionTemplate.is_active,
        ).where(
            RestrictionTemplate.issuer_id == issuer_id,
            RestrictionTemplate.id.in_(ids),
            RestrictionTemplate.is_active.is_(True),
        )
        rows = self._run(lambda: self._reader.execute(statement).all())
        return [RestrictionTemplateEntry(*row) for row in rows]

    def fetch_securities(self, issuer_id: str) -> list[SecurityEntry]:
        statement = select(Security.cusip, Security.issue_name, Security.class_name).where(
            Security.issuer_id == issuer_id
        )
        rows = self._run(lambda: self._reader.execute(statement).all())
        return [SecurityEntry(*row) for row in rows]

    @staticmethod
    def _run(query: Callable[[], _T]) -> _T:
        try:
            return query()
        except SQLAlchemyError as exc:
            logger.error("ledger query failed", extra={"error": str(exc)})
            raise DataFetchError("Unable to read the transfer journal") from exc


@dataclass(slots=True)
class _Accumulator:
    shareholder_id: str
    cusip: str
    shares_outstanding: int = 0
    restricted_shares: int = 0
    template_ids: list[str] = field(default_factory=list)
    lines: list[LedgerLine] = field(default_factory=list)

    def attach(self, template_id: str | None) -> None:
        if template_id and template_id not in self.template_ids:
            self.template_ids.append(template_id)


def end_of_day(as_of: date) -> datetime:
    """Inclusive cutoff covering every entry effective on ``as_of``."""
    return datetime.combine(as_of, time.max)


class PositionDerivationEngine:
    """Fold the journal into per-shareholder, per-security positions."""

    def __init__(self, ledger: LedgerSource, *, strict_transaction_types: bool = False) -> None:
        self._ledger = ledger
        self._strict = strict_transaction_types

    def derive(
        self,
        issuer_id: str,
        *,
        as_of: date,
        shareholder_id: str | None = None,
    ) -> PositionSet:
        scope = "shareholder" if shareholder_id else "issuer"
        cutoff = end_of_day(as_of)
        with traced(
            "positions.derive",
            issuer_id=issuer_id,
            shareholder_id=shareholder_id,
            as_of=as_of.isoformat(),
        ) as span, POSITION_DERIVATION_SECONDS.labels(scope=scope).time():
            with self._ledger.snapshot():
                transfers = self._ledger.fetch_transfers(
                    issuer_id, cutoff=cutoff, shareholder_id=shareholder_id
                )
                manual = self._ledger.fetch_manual_restrictions(
                    issuer_id, cutoff=cutoff, shareholder_id=shareholder_id
                )
                groups = self._fold(transfers, manual)
                wanted = [tid for group in groups.values() for tid in group.template_ids]
                templates = {
                    template.id: template
                    for template in self._ledger.fetch_restriction_templates(issuer_id, set(wanted))
                    if template.is_active
                }
                securities = {
                    security.cusip: security for security in self._ledger.fetch_securities(issuer_id)
                }

            positions = tuple(
                self._finalise(group, templates, securities) for group in groups.values()
            )
            span.set_attribute("positions.count", len(positions))

        logger.debug(
            "derived positions",
            extra={
                "issuer_id": issuer_id,
                "shareholder_id": shareholder_id,
                "as_of": as_of.isoformat(),
                "transfers": len(transfers),
                "positions": len(positions),
            },
        )
        return PositionSet(issuer_id=issuer_id, as_of=as_of, positions=positions)

    def _fold(
        self,
        transfers: Sequence[TransferEntry],
        manual: Sequence[ManualRestrictionEntry],
    ) -> dict[tuple[str, str], _Accumulator]:
        groups: dict[tuple[str, str], _Accumulator] = {}

        def group_for(shareholder_id: str, cusip: str) -> _Accumulator:
            key = (shareholder_id, cusip)
            if key not in groups:
                groups[key] = _Accumulator(shareholder_id=shareholder_id, cusip=cusip)
            return groups[key]

        ordered = sorted(
            transfers,
            key=lambda entry: (entry.transaction_date, entry.created_at or entry.transaction_date, entry.id),
        )
        for entry in ordered:
            direction = classify_direction(entry.transaction_type, strict=self._strict)
            group = group_for(entry.shareholder_id, entry.cusip)
            group.shares_outstanding += int(direction) * entry.share_quantity
            group.lines.append(
                LedgerLine(
                    transfer_id=entry.id,
                    transaction_date=entry.transaction_date,
                    transaction_type=entry.transaction_type,
                    direction=direction,
                    share_quantity=entry.share_quantity,
                    running_balance=group.shares_outstanding,
                )
            )
            if direction is Direction.CREDIT and entry.restriction_id:
                group.restricted_shares += entry.share_quantity
                group.attach(entry.restriction_id)

        for restriction in manual:
            group = group_for(restriction.shareholder_id, restriction.cusip)
            group.restricted_shares += restriction.restricted_shares
            group.attach(restriction.restriction_id)

        return groups

    @staticmethod
    def _finalise(
        group: _Accumulator,
        templates: dict[str, RestrictionTemplateEntry],
        securities: dict[str, SecurityEntry],
    ) -> Position:
        security = securities.get(group.cusip)
        return Position(
            shareholder_id=group.shareholder_id,
            cusip=group.cusip,
            shares_outstanding=group.shares_outstanding,
            restricted_shares=group.restricted_shares,
            restrictions=tuple(templates[tid] for tid in group.template_ids if tid in templates),
            security_name=security.issue_name if security else None,
            security_type=security.class_name if security else None,
            lines=tuple(group.lines),
        )


def derive_positions(
    session: Session,
    issuer_id: str,
    *,
    as_of: date,
    shareholder_id: str | None = None,
    settings: Settings | None = None,
) -> PositionSet:
    """Derive positions from the database using the configured classification mode."""

    settings = settings or get_settings()
    engine = PositionDerivationEngine(
        SqlLedgerSource(session),
        strict_transaction_types=settings.strict_transaction_types,
    )
    return engine.derive(issuer_id, as_of=as_of, shareholder_id=shareholder_id)


__all__ = [
    "CREDIT_TRANSACTION_TYPES",
    "DEBIT_TRANSACTION_TYPES",
    "DataFetchError",
    "Direction",
    "LedgerLine",
    "LedgerSource",
    "ManualRestrictionEntry",
    "Position",
    "PositionDerivationEngine",
    "PositionError",
    "PositionSet",
    "RestrictionTemplateEntry",
    "SecurityEntry",
    "SqlLedgerSource",
    "TransferEntry",
    "UnknownTransactionTypeError",
    "classify_direction",
    "derive_positions",
    "end_of_day",
]
