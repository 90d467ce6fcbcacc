"""User accounts, roles and issuer membership endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from transfer_agent.api.access import IssuerAccess, require_issuer_role
from transfer_agent.api.deps import get_db_session
from transfer_agent.api.routes.auth import AuthenticatedUser, get_current_user, hash_password, require_role
from transfer_agent.models import InvitedUser, IssuerUser, Role, User
from transfer_agent.schemas.user import IssuerUserCreate, IssuerUserRead, RoleRead, UserCreate, UserRead
from transfer_agent.services.roles import ADMIN, SUPERADMIN

logger = logging.getLogger(__name__)

# Issuer-scoped membership, mounted under /issuers/{issuer_id}.
router = APIRouter(prefix="/users")
# Global account administration.
accounts_router = APIRouter()


@accounts_router.get("/roles", response_model=list[RoleRead])
def list_roles(
    session: Session = Depends(get_db_session),
    _: AuthenticatedUser = Depends(get_current_user),
) -> list[RoleRead]:
    roles = session.scalars(select(Role).order_by(Role.role_name)).all()
    return [RoleRead.model_validate(role) for role in roles]


@accounts_router.post("/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("superadmin")),
) -> UserRead:
    account = User(
        email=payload.email.lower(),
        name=payload.name,
        hashed_password=hash_password(payload.password),
        is_super_admin=payload.is_super_admin,
    )
    session.add(account)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists",
        ) from exc
    session.refresh(account)
    logger.info("user created", extra={"user_id": account.id, "actor": user.email})
    return UserRead.model_validate(account)


@router.get("/", response_model=list[IssuerUserRead])
def list_issuer_users(
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(ADMIN)),
) -> list[IssuerUserRead]:
    members = session.execute(
        select(User.id, User.email, User.name, Role.role_name)
        .join(IssuerUser, IssuerUser.user_id == User.id)
        .join(Role, IssuerUser.role_id == Role.id)
        .where(IssuerUser.issuer_id == access.issuer.id)
        .order_by(User.email)
    ).all()
    invitations = session.execute(
        select(InvitedUser.email, InvitedUser.name, Role.role_name)
        .join(Role, InvitedUser.role_id == Role.id)
        .where(InvitedUser.issuer_id == access.issuer.id)
        .order_by(InvitedUser.email)
    ).all()

    result = [
        IssuerUserRead(user_id=user_id, email=email, name=name, role_name=role_name)
        for user_id, email, name, role_name in members
    ]
    result.extend(
        IssuerUserRead(user_id=None, email=email, name=name, role_name=role_name, invited=True)
        for email, name, role_name in invitations
    )
    return result


@router.post("/", response_model=IssuerUserRead, status_code=status.HTTP_201_CREATED)
def assign_issuer_user(
    payload: IssuerUserCreate,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(ADMIN)),
) -> IssuerUserRead:
    """Grant an existing user a role in the issuer, or invite an unknown email."""

    if payload.role_name == SUPERADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Superadmin cannot be granted per issuer",
        )
    role = session.scalar(select(Role).where(Role.role_name == payload.role_name))
    if role is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown role")

    email = payload.email.lower()
    account = session.scalar(select(User).where(func.lower(User.email) == email))
    if account is None:
        invitation = InvitedUser(
            email=email,
            name=payload.name,
            issuer_id=access.issuer.id,
            role_id=role.id,
            invited_by=access.user.user_id,
        )
        session.add(invitation)
        session.commit()
        logger.info(
            "user invited",
            extra={"issuer_id": access.issuer.id, "role": role.role_name, "actor": access.user.email},
        )
        return IssuerUserRead(
            user_id=None, email=email, name=payload.name, role_name=role.role_name, invited=True
        )

    session.add(IssuerUser(user_id=account.id, issuer_id=access.issuer.id, role_id=role.id))
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already holds this role for the issuer",
        ) from exc
    logger.info(
        "issuer role assigned",
        extra={"issuer_id": access.issuer.id, "user_id": account.id, "role": role.role_name},
    )
    return IssuerUserRead(
        user_id=account.id, email=account.email, name=account.name, role_name=role.role_name
    )


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_issuer_user(
    user_id: str,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(ADMIN)),
) -> None:
    result = session.execute(
        delete(IssuerUser).where(IssuerUser.user_id == user_id, IssuerUser.issuer_id == access.issuer.id)
    )
    if not result.rowcount:
        session.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User is not assigned to this issuer")
    session.commit()
    logger.info("issuer role removed", extra={"issuer_id": access.issuer.id, "user_id": user_id})


@router.delete("/invitations/{email}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_invitation(
    email: str,
    session: Session = Depends(get_db_session),
    access: IssuerAccess = Depends(require_issuer_role(ADMIN)),
) -> None:
    result = session.execute(
        delete(InvitedUser).where(
            func.lower(InvitedUser.email) == email.lower(), InvitedUser.issuer_id == access.issuer.id
        )
    )
    if not result.rowcount:
        session.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")
    session.commit()


__all__ = [
    "accounts_router",
    "assign_issuer_user",
    "create_user",
    "list_issuer_users",
    "list_roles",
    "remove_issuer_user",
    "revoke_invitation",
    "router",
]
