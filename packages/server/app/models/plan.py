"""Billing plan model."""

from decimal import Decimal
from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from hearth_shared.schemas.common import BillingCycle

from .base import Money, TimestampMixin, UUIDMixin, enum_column


class Plan(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "plans"

    community_id: Optional[uuid.UUID] = Field(default=None, foreign_key="communities.id", index=True)
    name: str = Field(nullable=False)
    price: Decimal = Field(default=Decimal("0"), sa_type=Money, nullable=False)
    currency: str = Field(default="USD", nullable=False, max_length=3)
    billing_cycle: BillingCycle = Field(
        default=BillingCycle.MONTHLY, sa_type=enum_column(BillingCycle), nullable=False
    )
    stripe_price_id: Optional[str] = Field(default=None, unique=True, index=True)
    active: bool = Field(default=True, nullable=False)
