from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from transfer_agent.db.session import (
    TransactionStateError,
    has_pending_writes,
    in_serializable_transaction,
    serializable_transaction,
)
from transfer_agent.models import Issuer, Shareholder


def _holder(issuer: Issuer, account_number: str) -> Shareholder:
    return Shareholder(issuer_id=issuer.id, account_number=account_number, full_name=f"Holder {account_number}")


def _holder_count(session: Session) -> int:
    return session.scalar(select(func.count(Shareholder.id)))


def test_pending_changes_are_refused(db_session: Session, issuer: Issuer) -> None:
    db_session.add(_holder(issuer, "PENDING-1"))

    with pytest.raises(TransactionStateError):
        with serializable_transaction(db_session):
            db_session.add(_holder(issuer, "INSIDE-1"))

    db_session.rollback()
    assert _holder_count(db_session) == 0


def test_flushed_changes_are_refused(db_session: Session, issuer: Issuer) -> None:
    db_session.add(_holder(issuer, "FLUSHED-1"))
    db_session.flush()
    assert has_pending_writes(db_session)

    with pytest.raises(TransactionStateError):
        with serializable_transaction(db_session):
            pass

    db_session.rollback()
    assert not has_pending_writes(db_session)
    assert _holder_count(db_session) == 0


def test_read_only_prefix_is_replaced_by_the_serializable_unit(db_session: Session, issuer: Issuer) -> None:
    assert _holder_count(db_session) == 0
    assert db_session.in_transaction()

    with serializable_transaction(db_session):
        assert in_serializable_transaction(db_session)
        db_session.add(_holder(issuer, "INSIDE-1"))

    assert not in_serializable_transaction(db_session)
    assert not has_pending_writes(db_session)
    db_session.rollback()
    assert _holder_count(db_session) == 1


def test_failed_unit_rolls_back_and_clears_state(db_session: Session, issuer: Issuer) -> None:
    with pytest.raises(RuntimeError, match="boom"):
        with serializable_transaction(db_session):
            db_session.add(_holder(issuer, "INSIDE-1"))
            db_session.flush()
            raise RuntimeError("boom")

    assert not in_serializable_transaction(db_session)
    assert not has_pending_writes(db_session)
    assert _holder_count(db_session) == 0
