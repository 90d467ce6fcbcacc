"""Common dependencies for API routes."""
from __future__ import annotations

from collections.abc import Iterator

from fastapi import Depends
from sqlalchemy.orm import Session

from transfer_agent.db.session import SessionLocal
from transfer_agent.services.roles import RoleResolver


def get_db_session() -> Iterator[Session]:
    """Yield a database session for FastAPI dependencies."""

    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def get_role_resolver(session: Session = Depends(get_db_session)) -> RoleResolver:
    """One resolver per request, so role lookups are cached only for that request."""
    return RoleResolver(session)


__all__ = ["get_db_session", "get_role_resolver"]
