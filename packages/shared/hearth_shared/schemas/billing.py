"""Plan, subscription, payment and webhook schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import UUID4, BaseModel

from .common import BillingCycle, CamelModel, PaymentStatus, SubscriptionStatus


class PlanResponse(CamelModel):
    id: UUID4
    community_id: Optional[UUID4] = None
    name: str
    price: Decimal
    currency: str
    billing_cycle: BillingCycle
    stripe_price_id: Optional[str] = None
    active: bool


class SubscriptionResponse(CamelModel):
    id: UUID4
    user_id: UUID4
    plan_id: UUID4
    community_id: Optional[UUID4] = None
    status: SubscriptionStatus
    start_date: datetime
    end_date: Optional[datetime] = None
    stripe_subscription_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SubscriptionCreateRequest(CamelModel):
    """Explicit free-plan join."""
    plan_id: UUID4


class SubscriptionCancelResponse(CamelModel):
    subscription: SubscriptionResponse
    pending_gateway_confirmation: bool = False


class PaymentResponse(CamelModel):
    id: UUID4
    user_id: UUID4
    subscription_id: Optional[UUID4] = None
    plan_id: Optional[UUID4] = None
    amount: Decimal
    currency: str
    payment_gateway: str
    gateway_id: str
    status: PaymentStatus
    paid_at: Optional[datetime] = None
    created_at: datetime


class PaymentListResponse(BaseModel):
    data: List[PaymentResponse]


class WebhookAck(BaseModel):
    received: bool = True
