"""Role hierarchy and per-request role resolution."""
from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from transfer_agent.models import InvitedUser, IssuerUser, Role, Shareholder, User

logger = logging.getLogger(__name__)

SUPERADMIN = "superadmin"
ADMIN = "admin"
TRANSFER_TEAM = "transfer_team"
BROKER = "broker"
SHAREHOLDER = "shareholder"
READ_ONLY = "read_only"

ROLE_HIERARCHY: tuple[str, ...] = (SUPERADMIN, ADMIN, TRANSFER_TEAM, BROKER, SHAREHOLDER, READ_ONLY)
_RANK = {name: index for index, name in enumerate(ROLE_HIERARCHY)}


def role_rank(role: str | None) -> int:
    """Position in the hierarchy; smaller is more privileged, unknown roles rank last."""
    if role is None:
        return len(ROLE_HIERARCHY)
    return _RANK.get(role, len(ROLE_HIERARCHY))


def highest_role(names: Iterable[str | None]) -> str | None:
    ranked = [name for name in names if name in _RANK]
    if not ranked:
        return None
    return min(ranked, key=role_rank)


def has_permission(role: str | None, required: str) -> bool:
    if role not in _RANK:
        return False
    return role_rank(role) <= role_rank(required)


class RoleResolver:
    """Resolve a user's roles, caching answers for the lifetime of one request.

    Create one instance per request; cached answers are never shared between
    requests or users' sessions.
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._users: dict[str, User | None] = {}
        self._global: dict[str, str] = {}
        self._issuer: dict[tuple[str, str], str | None] = {}

    def user(self, email: str) -> User | None:
        key = email.lower()
        if key not in self._users:
            self._users[key] = self._session.scalar(select(User).where(func.lower(User.email) == key))
        return self._users[key]

    def global_role(self, email: str) -> str:
        key = email.lower()
        if key in self._global:
            return self._global[key]

        role = self._resolve_global(key)
        self._global[key] = role
        return role

    def issuer_role(self, email: str, issuer_id: str) -> str | None:
        """Role within one issuer; superadmins act as ``admin`` everywhere."""

        key = (email.lower(), issuer_id)
        if key in self._issuer:
            return self._issuer[key]

        user = self.user(email)
        role: str | None
        if user is None:
            role = None
        elif user.is_super_admin:
            role = ADMIN
        else:
            names = self._session.scalars(
                select(Role.role_name)
                .join(IssuerUser, IssuerUser.role_id == Role.id)
                .where(IssuerUser.user_id == user.id, IssuerUser.issuer_id == issuer_id)
            ).all()
            role = highest_role(names)
        self._issuer[key] = role
        return role

    def issuer_ids(self, email: str) -> list[str] | None:
        """Issuers the user is assigned to, or ``None`` when unrestricted."""

        user = self.user(email)
        if user is None:
            return []
        if user.is_super_admin:
            return None
        return list(
            self._session.scalars(
                select(IssuerUser.issuer_id)
                .where(IssuerUser.user_id == user.id, IssuerUser.issuer_id.is_not(None))
                .distinct()
            ).all()
        )

    def _resolve_global(self, email: str) -> str:
        user = self.user(email)
        if user is not None:
            if user.is_super_admin:
                return SUPERADMIN
            assigned = highest_role(
                self._session.scalars(
                    select(Role.role_name)
                    .join(IssuerUser, IssuerUser.role_id == Role.id)
                    .where(IssuerUser.user_id == user.id)
                ).all()
            )
            if assigned is not None:
                return assigned

        invited_as_broker = self._session.scalar(
            select(InvitedUser.id)
            .join(Role, InvitedUser.role_id == Role.id)
            .where(func.lower(InvitedUser.email) == email, Role.role_name == BROKER)
            .limit(1)
        )
        if invited_as_broker is not None:
            return BROKER

        holder = self._session.scalar(
            select(Shareholder.id).where(func.lower(Shareholder.email) == email).limit(1)
        )
        if holder is not None:
            return SHAREHOLDER

        logger.debug("no role assignment found", extra={"email": email})
        return READ_ONLY


__all__ = [
    "ADMIN",
    "BROKER",
    "READ_ONLY",
    "ROLE_HIERARCHY",
    "RoleResolver",
    "SHAREHOLDER",
    "SUPERADMIN",
    "TRANSFER_TEAM",
    "has_permission",
    "highest_role",
    "role_rank",
]
