"""Community and membership models."""

from datetime import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from hearth_shared.schemas.common import CommunityRole

from .base import TimestampMixin, UUIDMixin, _utcnow, enum_column


class Community(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "communities"

    name: str = Field(nullable=False, index=True)
    slug: str = Field(unique=True, nullable=False, index=True)
    owner_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)


class CommunityMember(SQLModel, table=True):
    __tablename__ = "community_members"

    community_id: uuid.UUID = Field(foreign_key="communities.id", primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    role: CommunityRole = Field(
        default=CommunityRole.MEMBER, sa_type=enum_column(CommunityRole), nullable=False
    )
    joined_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )
