"""Authentication endpoints for issuing JWTs."""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from threading import Lock
from typing import Any, Literal
from uuid import uuid4

import bcrypt
from cryptography.hazmat.primitives import serialization
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt  # type: ignore[import-untyped]
from pydantic import BaseModel, ValidationError

from transfer_agent.api.deps import get_role_resolver
from transfer_agent.core.config import Settings, get_settings
from transfer_agent.models import UserStatus
from transfer_agent.schemas.user import CurrentUserRead
from transfer_agent.services.roles import ROLE_HIERARCHY, RoleResolver

RoleName = Literal["superadmin", "admin", "transfer_team", "broker", "shareholder", "read_only"]

router = APIRouter()
security_scheme = HTTPBearer(auto_error=True)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenPayload(BaseModel):
    sub: str
    uid: str | None = None
    role: RoleName
    type: Literal["access", "refresh"]
    iat: datetime
    exp: datetime
    jti: str


@dataclass(frozen=True)
class AuthenticatedUser:
    email: str
    user_id: str | None
    role: RoleName
    token_id: str


class RefreshTokenStore:
    """In-memory store tracking active and blacklisted refresh tokens."""

    def __init__(self) -> None:
        self._active: dict[str, str] = {}
        self._blacklist: set[str] = set()
        self._lock = Lock()

    def mark_active(self, subject: str, token_id: str) -> None:
        with self._lock:
            self._active[subject] = token_id

    def is_active(self, subject: str, token_id: str) -> bool:
        with self._lock:
            if token_id in self._blacklist:
                return False
            return self._active.get(subject) == token_id

    def blacklist(self, token_id: str) -> None:
        with self._lock:
            self._blacklist.add(token_id)

    def reset(self) -> None:
        with self._lock:
            self._active.clear()
            self._blacklist.clear()


refresh_token_store = RefreshTokenStore()


def _load_signing_key(settings: Settings) -> Any:
    try:
        return serialization.load_pem_private_key(
            settings.jwt_private_key.encode("utf-8"),
            password=None,
        )
    except ValueError as exc:  # pragma: no cover - configuration issue
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Invalid JWT signing key",
        ) from exc


def _verification_key(settings: Settings) -> str:
    public_key = _load_signing_key(settings).public_key()
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")


def _create_token(
    *,
    subject: str,
    user_id: str | None,
    role: RoleName,
    settings: Settings,
    expires_delta: timedelta,
    token_type: Literal["access", "refresh"],
    signing_key: Any,
) -> tuple[str, str]:
    now = datetime.now(UTC)
    token_id = uuid4().hex
    payload = {
        "sub": subject,
        "uid": user_id,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
        "role": role,
        "type": token_type,
        "jti": token_id,
    }
    encoded = jwt.encode(payload, signing_key, algorithm=settings.jwt_algorithm)
    return encoded, token_id


def _issue_tokens(
    *,
    subject: str,
    user_id: str | None,
    role: RoleName,
    settings: Settings,
) -> tuple[TokenResponse, str]:
    signing_key = _load_signing_key(settings)
    access_token, _ = _create_token(
        subject=subject,
        user_id=user_id,
        role=role,
        settings=settings,
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
        token_type="access",
        signing_key=signing_key,
    )
    refresh_token, refresh_id = _create_token(
        subject=subject,
        user_id=user_id,
        role=role,
        settings=settings,
        expires_delta=timedelta(days=settings.refresh_token_expire_days),
        token_type="refresh",
        signing_key=signing_key,
    )
    response = TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.access_token_expire_minutes * 60,
    )
    return response, refresh_id


def _decode_token(*, token: str, settings: Settings) -> TokenPayload:
    try:
        payload = jwt.decode(token, _verification_key(settings), algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc
    try:
        return TokenPayload(**payload)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
) -> AuthenticatedUser:
    settings = get_settings()
    payload = _decode_token(token=credentials.credentials, settings=settings)
    if payload.type != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")
    request.state.actor_email = payload.sub
    return AuthenticatedUser(
        email=payload.sub,
        user_id=payload.uid,
        role=payload.role,
        token_id=payload.jti,
    )


def require_role(*roles: RoleName) -> Callable[..., AuthenticatedUser]:
    allowed_roles: set[str] = set(roles)

    def dependency(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
        if user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return dependency


def _verify_password(raw_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(raw_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def hash_password(raw_password: str) -> str:
    return bcrypt.hashpw(raw_password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


@router.post("/login", response_model=TokenResponse, summary="Issue JWT access tokens")
def login(
    payload: LoginRequest,
    resolver: RoleResolver = Depends(get_role_resolver),
) -> TokenResponse:
    settings = get_settings()
    if "@" not in payload.email:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid email address",
        )
    user = resolver.user(payload.email)
    if (
        user is None
        or user.status is not UserStatus.ACTIVE
        or not _verify_password(payload.password, user.hashed_password)
    ):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    role = resolver.global_role(user.email)
    if role not in ROLE_HIERARCHY:  # pragma: no cover - resolver only returns known roles
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Invalid role configuration")
    response, refresh_id = _issue_tokens(subject=user.email, user_id=user.id, role=role, settings=settings)
    refresh_token_store.mark_active(user.email, refresh_id)
    return response


@router.post("/refresh", response_model=TokenResponse, summary="Rotate JWT refresh tokens")
def refresh_token(
    payload: RefreshRequest,
    resolver: RoleResolver = Depends(get_role_resolver),
) -> TokenResponse:
    settings = get_settings()
    claims = _decode_token(token=payload.refresh_token, settings=settings)
    if claims.type != "refresh":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid token type")
    if not refresh_token_store.is_active(claims.sub, claims.jti):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token revoked",
        )

    refresh_token_store.blacklist(claims.jti)
    # Roles are re-resolved on every rotation.
    role = resolver.global_role(claims.sub)
    response, refresh_id = _issue_tokens(subject=claims.sub, user_id=claims.uid, role=role, settings=settings)
    refresh_token_store.mark_active(claims.sub, refresh_id)
    return response


@router.get("/me", response_model=CurrentUserRead, summary="Describe the signed-in user")
def current_user(user: AuthenticatedUser = Depends(get_current_user)) -> CurrentUserRead:
    return CurrentUserRead(email=user.email, user_id=user.user_id, role=user.role)


__all__ = [
    "AuthenticatedUser",
    "RoleName",
    "get_current_user",
    "hash_password",
    "refresh_token_store",
    "require_role",
    "router",
]
