# forexhub/schemas/users.py
"""
Schemas for users and admins.

Admins, editors and regular viewers share one identity space so an email
address can only ever belong to one account.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


PRIVILEGED_ROLES = frozenset({UserRole.ADMIN, UserRole.EDITOR})


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    username: str
    role: UserRole
    password_hash: str
    subscription_preferences: dict[str, Any] = Field(default_factory=dict)
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES


class UserPublic(BaseModel):
    """User as exposed over HTTP (no credential hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    username: str
    role: UserRole
    subscription_preferences: dict[str, Any] = Field(default_factory=dict)
    last_login_at: datetime | None = None
    created_at: datetime


class UserCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    email: str = Field(..., min_length=3, max_length=255)
    username: str = Field(..., min_length=1, max_length=80)
    password: str = Field(..., min_length=8, max_length=256)
    role: UserRole = UserRole.VIEWER
    subscription_preferences: dict[str, Any] = Field(default_factory=dict)


class UserUpdate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    email: str | None = Field(None, min_length=3, max_length=255)
    username: str | None = Field(None, min_length=1, max_length=80)
    password: str | None = Field(None, min_length=8, max_length=256)
    role: UserRole | None = None
    subscription_preferences: dict[str, Any] | None = None


class UserFilters(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    role: UserRole | None = None


class LoginRequest(BaseModel):
    email: str
    password: str
