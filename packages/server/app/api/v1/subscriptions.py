"""
Subscription endpoints.

GET  /api/v1/subscriptions                        - Caller's subscriptions
POST /api/v1/subscriptions                        - Join a free plan
POST /api/v1/subscriptions/{subscriptionId}/cancel - Cancel a subscription
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import subscriptions as subscription_service
from hearth_shared.schemas.billing import (
    SubscriptionCancelResponse,
    SubscriptionCreateRequest,
    SubscriptionResponse,
)

router = APIRouter()


@router.get("", response_model=List[SubscriptionResponse], tags=["Subscriptions"])
async def list_subscriptions(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    subscriptions = await subscription_service.list_subscriptions(session, user.id)
    return [SubscriptionResponse.model_validate(s) for s in subscriptions]


@router.post("", response_model=SubscriptionResponse, status_code=201, tags=["Subscriptions"])
async def join_free_plan(
    body: SubscriptionCreateRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Paid plans are rejected; they start through the payment flow."""
    subscription = await subscription_service.join_free_plan(session, user, body.plan_id)
    return SubscriptionResponse.model_validate(subscription)


@router.post(
    "/{subscriptionId}/cancel",
    response_model=SubscriptionCancelResponse,
    tags=["Subscriptions"],
)
async def cancel_subscription(
    subscriptionId: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Local-only subscriptions are canceled at once. Gateway-backed ones report
    ``pendingGatewayConfirmation`` until the gateway's deletion event lands.
    """
    subscription, pending = await subscription_service.cancel_subscription(
        session, user, subscriptionId
    )
    return SubscriptionCancelResponse(
        subscription=SubscriptionResponse.model_validate(subscription),
        pending_gateway_confirmation=pending,
    )
