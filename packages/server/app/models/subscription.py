"""Subscription model. Rows are never deleted; they move to canceled/expired."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from hearth_shared.schemas.common import SubscriptionStatus

from .base import TimestampMixin, UUIDMixin, _utcnow, enum_column


class Subscription(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "subscriptions"

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    plan_id: uuid.UUID = Field(foreign_key="plans.id", nullable=False, index=True)
    community_id: Optional[uuid.UUID] = Field(default=None, foreign_key="communities.id", index=True)
    status: SubscriptionStatus = Field(
        default=SubscriptionStatus.ACTIVE,
        sa_type=enum_column(SubscriptionStatus),
        nullable=False,
        index=True,
    )
    start_date: datetime = Field(
        default_factory=_utcnow, nullable=False, sa_type=sa.DateTime(timezone=True)
    )
    end_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    stripe_subscription_id: Optional[str] = Field(default=None, index=True)
    # created time of the last gateway event applied to this row
    gateway_updated_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
