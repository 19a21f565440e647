"""User and authentication schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import UUID4, EmailStr, Field

from .common import CamelModel, UserRole


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    name: Optional[str] = Field(default=None, max_length=200)
    username: Optional[str] = Field(
        default=None, min_length=3, max_length=40, pattern=r"^[a-z0-9_]+$"
    )


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserResponse(CamelModel):
    id: UUID4
    email: str
    name: Optional[str] = None
    username: Optional[str] = None
    image: Optional[str] = None
    role: UserRole
    points: int = 0
    level: int = 1
    created_at: datetime


class LoginResponse(CamelModel):
    user: UserResponse
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
