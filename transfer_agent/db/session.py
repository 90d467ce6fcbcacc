"""SQLAlchemy session management."""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, SessionTransaction, sessionmaker

from transfer_agent.core.config import get_settings
from transfer_agent.obs import instrument_sqlalchemy_engine

settings = get_settings()
engine = create_engine(settings.database_url, pool_pre_ping=True)
if settings.enable_tracing:
    instrument_sqlalchemy_engine(engine)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

_FLUSHED_WRITES = "flushed_writes"
_SERIALIZABLE = "serializable_transaction"


class TransactionStateError(RuntimeError):
    """Raised when a serializable unit would absorb writes made before it began."""


@event.listens_for(Session, "after_flush")
def _remember_flushed_writes(session: Session, flush_context: object) -> None:
    session.info[_FLUSHED_WRITES] = True


@event.listens_for(Session, "after_transaction_end")
def _forget_flushed_writes(session: Session, transaction: SessionTransaction) -> None:
    if transaction.parent is None:
        session.info.pop(_FLUSHED_WRITES, None)


def has_pending_writes(session: Session) -> bool:
    """Whether the open transaction holds unflushed or flushed but uncommitted changes."""
    return bool(session.new or session.dirty or session.deleted or session.info.get(_FLUSHED_WRITES))


def in_serializable_transaction(session: Session) -> bool:
    return bool(session.info.get(_SERIALIZABLE))


@contextmanager
def get_session() -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def serializable_transaction(session: Session) -> Iterator[None]:
    """Run the enclosed writes as one SERIALIZABLE transaction.

    A read-only transaction already open on the session is rolled back first
    so the isolation level applies from the first statement. Writes made
    before entering cannot be part of the unit, so they are refused.
    """

    bind = session.get_bind()
    if bind is None:
        raise RuntimeError("Session is not bound to an engine")

    if has_pending_writes(session):
        raise TransactionStateError("Commit or roll back pending changes before a serializable transaction")
    if session.in_transaction():
        session.rollback()

    if bind.dialect.name == "sqlite":
        session.execute(text("BEGIN IMMEDIATE"))
    else:
        session.execute(text("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE"))

    session.info[_SERIALIZABLE] = True
    try:
        yield
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.info.pop(_SERIALIZABLE, None)


__all__ = [
    "SessionLocal",
    "TransactionStateError",
    "engine",
    "get_session",
    "has_pending_writes",
    "in_serializable_transaction",
    "serializable_transaction",
]
