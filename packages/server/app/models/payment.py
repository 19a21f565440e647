"""Payment model (immutable) and the processed webhook event ledger."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from hearth_shared.schemas.common import PaymentStatus

from .base import Money, UUIDMixin, _utcnow, enum_column


class Payment(UUIDMixin, SQLModel, table=True):
    __tablename__ = "payments"

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    subscription_id: Optional[uuid.UUID] = Field(default=None, foreign_key="subscriptions.id", index=True)
    plan_id: Optional[uuid.UUID] = Field(default=None, foreign_key="plans.id")
    amount: Decimal = Field(sa_type=Money, nullable=False)
    currency: str = Field(nullable=False, max_length=3)
    payment_gateway: str = Field(default="stripe", nullable=False)
    gateway_id: str = Field(nullable=False, index=True)
    gateway_event_id: Optional[str] = Field(default=None, unique=True)
    status: PaymentStatus = Field(sa_type=enum_column(PaymentStatus), nullable=False)
    paid_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )


class StripeEvent(SQLModel, table=True):
    """Webhook events that were applied successfully."""

    __tablename__ = "stripe_events"

    stripe_event_id: str = Field(primary_key=True)
    event_type: str = Field(nullable=False)
    processed_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
