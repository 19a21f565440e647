"""
Plans and subscriptions: listing, free-plan joins and cancellation.

Paid subscriptions are created by the payment setup flow and reconciled from
gateway webhooks (see ``app.services.billing``).
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Optional

import stripe
import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.models.plan import Plan
from app.models.subscription import Subscription
from app.models.user import User
from app.services.notifications import deliver_in_app, fan_out
from hearth_shared.schemas.common import NotificationType, SubscriptionStatus

log = structlog.get_logger()
settings = get_settings()

OPEN_STATUSES = [SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING, SubscriptionStatus.PAST_DUE]


async def list_plans(session: AsyncSession, community_id: Optional[uuid.UUID] = None) -> list[Plan]:
    conditions = [Plan.active.is_(True)]
    if community_id is not None:
        conditions.append(Plan.community_id == community_id)
    result = await session.execute(select(Plan).where(*conditions).order_by(Plan.price, Plan.name))
    return list(result.scalars().all())


async def list_subscriptions(session: AsyncSession, user_id: uuid.UUID) -> list[Subscription]:
    result = await session.execute(
        select(Subscription)
        .where(Subscription.user_id == user_id)
        .order_by(Subscription.created_at.desc())
    )
    return list(result.scalars().all())


async def join_free_plan(session: AsyncSession, user: User, plan_id: uuid.UUID) -> Subscription:
    plan = await session.get(Plan, plan_id)
    if not plan or not plan.active:
        raise HTTPException(status_code=404, detail="Plan not found.")
    if plan.price > 0:
        raise HTTPException(
            status_code=400,
            detail="Paid plans are started through the payment flow.",
        )

    result = await session.execute(
        select(Subscription).where(
            Subscription.user_id == user.id,
            Subscription.plan_id == plan.id,
            Subscription.status.in_(OPEN_STATUSES),
        )
    )
    if result.scalars().first():
        raise HTTPException(status_code=409, detail="Already subscribed to this plan.")

    subscription = Subscription(
        user_id=user.id,
        plan_id=plan.id,
        community_id=plan.community_id,
        status=SubscriptionStatus.ACTIVE,
        start_date=datetime.now(timezone.utc),
    )
    session.add(subscription)
    await session.flush()

    notifications = await fan_out(
        session,
        [user.id],
        NotificationType.SUBSCRIPTION_STARTED,
        community_id=plan.community_id,
        related_entity_type="subscription",
        related_entity_id=str(subscription.id),
        title="Subscription started",
        message=f"You are now subscribed to {plan.name}.",
    )
    await session.commit()
    log.info("subscription.started", subscription_id=str(subscription.id), plan_id=str(plan.id))
    await deliver_in_app(session, notifications)
    return subscription


def _cancel_at_gateway(stripe_subscription_id: str) -> None:
    stripe.api_key = settings.stripe_secret_key
    stripe.Subscription.cancel(stripe_subscription_id)


async def cancel_subscription(
    session: AsyncSession, user: User, subscription_id: uuid.UUID
) -> tuple[Subscription, bool]:
    """
    Cancel a subscription owned by ``user``. Returns (subscription, pending).

    Local-only subscriptions are canceled immediately. Gateway-backed ones
    are canceled at Stripe; the local row changes when the
    ``customer.subscription.deleted`` webhook arrives.
    """
    subscription = await session.get(Subscription, subscription_id)
    if not subscription or subscription.user_id != user.id:
        raise HTTPException(status_code=404, detail="Subscription not found.")
    if subscription.status not in OPEN_STATUSES:
        raise HTTPException(status_code=409, detail="Subscription is not active.")

    if subscription.stripe_subscription_id:
        if not settings.stripe_secret_key:
            raise HTTPException(status_code=503, detail="Payment gateway is not configured.")
        try:
            await asyncio.to_thread(_cancel_at_gateway, subscription.stripe_subscription_id)
        except stripe.StripeError as exc:
            log.error(
                "subscription.gateway_cancel_failed",
                subscription_id=str(subscription.id),
                error=str(exc),
            )
            raise HTTPException(status_code=502, detail="Payment gateway error.")
        log.info("subscription.cancel_requested", subscription_id=str(subscription.id))
        return subscription, True

    subscription.status = SubscriptionStatus.CANCELED
    subscription.end_date = datetime.now(timezone.utc)
    session.add(subscription)
    await session.flush()
    log.info("subscription.canceled", subscription_id=str(subscription.id))
    return subscription, False
