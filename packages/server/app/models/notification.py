"""Notification and per-user delivery setting models."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from hearth_shared.schemas.common import NotificationType

from .base import JSONType, TimestampMixin, UUIDMixin, _utcnow, enum_column


class Notification(UUIDMixin, SQLModel, table=True):
    """A per-recipient fact. Only ``is_read`` changes after insert."""

    __tablename__ = "notifications"
    __table_args__ = (
        sa.Index("ix_notifications_user_read_created", "user_id", "is_read", "created_at"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    type: NotificationType = Field(sa_type=enum_column(NotificationType), nullable=False)
    actor_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    community_id: Optional[uuid.UUID] = Field(default=None, foreign_key="communities.id")
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None
    title: Optional[str] = None
    message: Optional[str] = None
    is_read: bool = Field(default=False, nullable=False)
    data: Optional[dict] = Field(default=None, sa_type=JSONType)
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )


class UserNotificationSetting(UUIDMixin, TimestampMixin, SQLModel, table=True):
    """Delivery override for one (user, community-or-global, type)."""

    __tablename__ = "user_notification_settings"
    __table_args__ = (
        sa.UniqueConstraint(
            "user_id",
            "community_id",
            "notification_type",
            name="uq_user_notification_settings_scope",
            postgresql_nulls_not_distinct=True,
        ),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    community_id: Optional[uuid.UUID] = Field(default=None, foreign_key="communities.id")
    notification_type: NotificationType = Field(
        sa_type=enum_column(NotificationType), nullable=False
    )
    email_enabled: bool = Field(default=True, nullable=False)
    in_app_enabled: bool = Field(default=True, nullable=False)
    push_enabled: bool = Field(default=False, nullable=False)
    digest_frequency: Optional[str] = Field(default=None, max_length=32)
