"""Issuer-scoped authorisation dependencies."""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from transfer_agent.api.deps import get_db_session, get_role_resolver
from transfer_agent.api.routes.auth import AuthenticatedUser, get_current_user
from transfer_agent.models import Issuer
from transfer_agent.services.roles import RoleResolver, has_permission


@dataclass(frozen=True)
class IssuerAccess:
    issuer: Issuer
    user: AuthenticatedUser
    role: str


def require_issuer_role(minimum: str) -> Callable[..., IssuerAccess]:
    """Resolve the issuer in the path and check the caller's role within it.

    Unknown issuers yield 404; callers without a sufficient role yield 403.
    """

    def dependency(
        issuer_id: str,
        request: Request,
        user: AuthenticatedUser = Depends(get_current_user),
        session: Session = Depends(get_db_session),
        resolver: RoleResolver = Depends(get_role_resolver),
    ) -> IssuerAccess:
        issuer = session.get(Issuer, issuer_id)
        if issuer is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Issuer not found")
        request.state.issuer_id = issuer_id

        role = resolver.issuer_role(user.email, issuer_id)
        if role is None or not has_permission(role, minimum):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return IssuerAccess(issuer=issuer, user=user, role=role)

    return dependency


__all__ = ["IssuerAccess", "require_issuer_role"]
