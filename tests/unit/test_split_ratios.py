from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from transfer_agent.models import Issuer, IssuerStatus, SplitEvent
from transfer_agent.services.splits import (
    SplitQuantities,
    SplitRatioMissingError,
    get_split_event,
    list_split_events,
    resolve_split_quantities,
    split_units,
    upsert_split_event,
    warrants_label,
)
from transfer_agent.services.transfers import IssuerNotActiveError


def test_warrants_label_follows_the_issuer(issuer: Issuer) -> None:
    assert warrants_label(issuer) == "Warrants"
    issuer.split_security_type = "Right"
    assert warrants_label(issuer) == "Rights"
    issuer.split_security_type = "Warrant"
    assert warrants_label(issuer) == "Warrants"


@pytest.mark.parametrize(
    ("units", "class_a_ratio", "rights_ratio", "expected"),
    [
        (1000, "1", "0.5", SplitQuantities(class_a=1000, warrants=500)),
        (999, "1", "0.5", SplitQuantities(class_a=999, warrants=499)),
        (7, "1", "0.333333", SplitQuantities(class_a=7, warrants=2)),
        (10, "1", "0", SplitQuantities(class_a=10, warrants=0)),
    ],
)
def test_split_units_rounds_down(units: int, class_a_ratio: str, rights_ratio: str, expected: SplitQuantities) -> None:
    event = SplitEvent(class_a_ratio=Decimal(class_a_ratio), rights_ratio=Decimal(rights_ratio))

    assert split_units(units, event) == expected


def test_upsert_creates_then_replaces(db_session: Session, issuer: Issuer) -> None:
    first, created = upsert_split_event(db_session, issuer, class_a_ratio=Decimal("1"), rights_ratio=Decimal("0.5"))
    second, created_again = upsert_split_event(
        db_session, issuer, class_a_ratio=Decimal("1"), rights_ratio=Decimal("0.25")
    )

    assert created is True
    assert created_again is False
    assert second.id == first.id
    assert second.rights_ratio == Decimal("0.25")
    assert [event.transaction_type for event in list_split_events(db_session, issuer.id)] == ["separation"]


def test_suspended_issuers_keep_their_ratios(db_session: Session, issuer: Issuer) -> None:
    issuer.status = IssuerStatus.SUSPENDED
    db_session.commit()

    with pytest.raises(IssuerNotActiveError):
        upsert_split_event(db_session, issuer, class_a_ratio=Decimal("1"), rights_ratio=Decimal("0.5"))
    assert get_split_event(db_session, issuer.id) is None


def test_missing_quantities_come_from_the_separation_ratio(db_session: Session, issuer: Issuer) -> None:
    with pytest.raises(SplitRatioMissingError):
        resolve_split_quantities(db_session, issuer.id, 1000)
    assert resolve_split_quantities(db_session, issuer.id, 1000, class_a=900, warrants=100) == SplitQuantities(
        class_a=900, warrants=100
    )

    upsert_split_event(db_session, issuer, class_a_ratio=Decimal("1"), rights_ratio=Decimal("0.5"))

    assert resolve_split_quantities(db_session, issuer.id, 1000) == SplitQuantities(class_a=1000, warrants=500)
    assert resolve_split_quantities(db_session, issuer.id, 1000, warrants=0) == SplitQuantities(
        class_a=1000, warrants=0
    )
