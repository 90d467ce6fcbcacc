"""Schemas for users, roles and issuer assignments."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from transfer_agent.models.user import UserStatus


class RoleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    role_name: str
    display_name: str | None


class UserCreate(BaseModel):
    email: str = Field(..., max_length=320)
    name: str | None = Field(default=None, max_length=255)
    password: str = Field(..., min_length=8)
    is_super_admin: bool = False


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str | None
    is_super_admin: bool
    status: UserStatus


class IssuerUserCreate(BaseModel):
    email: str = Field(..., max_length=320)
    role_name: str
    name: str | None = Field(default=None, max_length=255)


class IssuerUserRead(BaseModel):
    user_id: str | None
    email: str
    name: str | None
    role_name: str
    invited: bool = False


class CurrentUserRead(BaseModel):
    email: str
    user_id: str | None
    role: str


__all__ = [
    "CurrentUserRead",
    "IssuerUserCreate",
    "IssuerUserRead",
    "RoleRead",
    "UserCreate",
    "UserRead",
]
