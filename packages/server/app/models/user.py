"""User and login session models."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from hearth_shared.schemas.common import UserRole

from .base import UUIDMixin, _utcnow, enum_column


class User(UUIDMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, index=True, nullable=False)
    name: Optional[str] = None
    username: Optional[str] = Field(default=None, unique=True, index=True)
    image: Optional[str] = None
    password_hash: Optional[str] = Field(default=None)  # bcrypt
    role: UserRole = Field(default=UserRole.MEMBER, sa_type=enum_column(UserRole), nullable=False)
    points: int = Field(default=0, nullable=False, index=True)  # leaderboard counter
    level: int = Field(default=1, nullable=False)
    stripe_customer_id: Optional[str] = Field(default=None, unique=True, index=True)
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )


class UserSession(UUIDMixin, SQLModel, table=True):
    """One row per issued login token; doubles as the activity signal."""

    __tablename__ = "user_sessions"

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    jti: str = Field(unique=True, nullable=False)
    expires: datetime = Field(nullable=False, index=True, sa_type=sa.DateTime(timezone=True))
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )
