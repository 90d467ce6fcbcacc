"""Unit split ratios and the share quantities they produce."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from transfer_agent.models import Issuer, IssuerStatus, SplitEvent
from transfer_agent.services.transfers import IssuerNotActiveError

logger = logging.getLogger(__name__)

SEPARATION = "separation"


class SplitRatioMissingError(RuntimeError):
    """Raised when split quantities are needed but the issuer has no ratio on file."""


@dataclass(slots=True, frozen=True)
class SplitQuantities:
    class_a: int
    warrants: int


def warrants_label(issuer: Issuer) -> str:
    return "Rights" if issuer.split_security_type == "Right" else "Warrants"


def list_split_events(session: Session, issuer_id: str) -> list[SplitEvent]:
    statement = (
        select(SplitEvent).where(SplitEvent.issuer_id == issuer_id).order_by(SplitEvent.transaction_type)
    )
    return list(session.scalars(statement).all())


def get_split_event(session: Session, issuer_id: str, transaction_type: str = SEPARATION) -> SplitEvent | None:
    return session.scalar(
        select(SplitEvent).where(
            SplitEvent.issuer_id == issuer_id, SplitEvent.transaction_type == transaction_type
        )
    )


def upsert_split_event(
    session: Session,
    issuer: Issuer,
    *,
    class_a_ratio: Decimal,
    rights_ratio: Decimal,
    transaction_type: str = SEPARATION,
) -> tuple[SplitEvent, bool]:
    """Record the issuer's ratio for ``transaction_type``, replacing any earlier one.

    Returns the event and whether it was newly created.
    """

    if issuer.status is IssuerStatus.SUSPENDED:
        raise IssuerNotActiveError(f"Issuer '{issuer.issuer_name}' is suspended and read-only")

    event = get_split_event(session, issuer.id, transaction_type)
    created = event is None
    if event is None:
        event = SplitEvent(
            issuer_id=issuer.id,
            transaction_type=transaction_type,
            class_a_ratio=class_a_ratio,
            rights_ratio=rights_ratio,
        )
        session.add(event)
    else:
        event.class_a_ratio = class_a_ratio
        event.rights_ratio = rights_ratio
    session.commit()
    session.refresh(event)
    logger.info(
        "split ratio saved",
        extra={"issuer_id": issuer.id, "transaction_type": transaction_type, "created": created},
    )
    return event, created


def split_units(units: int, event: SplitEvent) -> SplitQuantities:
    """Shares produced by separating ``units``, rounded down to whole shares."""

    def _whole(ratio: Decimal) -> int:
        return int((Decimal(units) * Decimal(ratio)).to_integral_value(rounding=ROUND_FLOOR))

    return SplitQuantities(class_a=_whole(event.class_a_ratio), warrants=_whole(event.rights_ratio))


def resolve_split_quantities(
    session: Session,
    issuer_id: str,
    units: int,
    *,
    class_a: int | None = None,
    warrants: int | None = None,
) -> SplitQuantities:
    """Use the quantities given, deriving missing ones from the issuer's separation ratio."""

    if class_a is not None and warrants is not None:
        return SplitQuantities(class_a=class_a, warrants=warrants)
    event = get_split_event(session, issuer_id)
    if event is None:
        raise SplitRatioMissingError("No split ratio is configured for this issuer")
    derived = split_units(units, event)
    return SplitQuantities(
        class_a=derived.class_a if class_a is None else class_a,
        warrants=derived.warrants if warrants is None else warrants,
    )


__all__ = [
    "SEPARATION",
    "SplitQuantities",
    "SplitRatioMissingError",
    "get_split_event",
    "list_split_events",
    "resolve_split_quantities",
    "split_units",
    "upsert_split_event",
    "warrants_label",
]
