"""Chat channel, membership and message models."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin, _utcnow


class ChatChannel(UUIDMixin, SQLModel, table=True):
    __tablename__ = "chat_channels"

    community_id: Optional[uuid.UUID] = Field(default=None, foreign_key="communities.id", index=True)
    name: Optional[str] = None
    is_direct_message: bool = Field(default=False, nullable=False)
    last_message_id: Optional[uuid.UUID] = Field(default=None)
    last_message_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )


class ChatChannelMember(SQLModel, table=True):
    __tablename__ = "chat_channel_members"

    channel_id: uuid.UUID = Field(foreign_key="chat_channels.id", primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    last_read_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    joined_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )


class ChatMessage(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "chat_messages"
    __table_args__ = (
        sa.Index("ix_chat_messages_channel_created", "channel_id", "created_at"),
    )

    channel_id: uuid.UUID = Field(foreign_key="chat_channels.id", nullable=False)
    sender_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    content: str = Field(default="", nullable=False)
    attachment_url: Optional[str] = None
    attachment_type: Optional[str] = None
    deleted_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
