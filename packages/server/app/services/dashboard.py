"""
Admin dashboard aggregates. Point-in-time reads, recomputed per request.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.community import Community, CommunityMember
from app.models.payment import Payment
from app.models.plan import Plan
from app.models.subscription import Subscription
from app.models.user import User, UserSession
from hearth_shared.schemas.common import (
    CHURNED_STATUSES,
    BillingCycle,
    PaymentStatus,
    SubscriptionStatus,
)
from hearth_shared.schemas.dashboard import (
    ActivityDataStatus,
    FinancialMetrics,
    GroupActivityMetrics,
)

WINDOW = timedelta(days=30)
TWO_PLACES = Decimal("0.01")


async def _ensure_community(session: AsyncSession, community_id: uuid.UUID) -> Community:
    community = await session.get(Community, community_id)
    if not community:
        raise HTTPException(status_code=404, detail=f"Community with ID {community_id} not found.")
    return community


async def _count(session: AsyncSession, stmt) -> int:
    return (await session.execute(stmt)).scalar_one()


def monthly_value(price: Decimal, billing_cycle: BillingCycle) -> Decimal:
    """Contribution of one active subscription to MRR."""
    if billing_cycle == BillingCycle.YEARLY:
        return Decimal(price) / 12
    if billing_cycle == BillingCycle.MONTHLY:
        return Decimal(price)
    return Decimal(0)


async def get_financials(
    session: AsyncSession,
    community_id: Optional[uuid.UUID] = None,
    *,
    now: Optional[datetime] = None,
) -> FinancialMetrics:
    now = now or datetime.now(timezone.utc)
    since = now - WINDOW

    scope = []
    if community_id is not None:
        await _ensure_community(session, community_id)
        scope.append(Subscription.community_id == community_id)

    def sub_count(*conditions):
        return select(func.count()).select_from(Subscription).where(*scope, *conditions)

    total_active = await _count(session, sub_count(Subscription.status == SubscriptionStatus.ACTIVE))

    result = await session.execute(
        select(Subscription.user_id, Plan.price, Plan.billing_cycle)
        .join(Plan, Plan.id == Subscription.plan_id)
        .where(*scope, Subscription.status == SubscriptionStatus.ACTIVE)
    )
    mrr = Decimal(0)
    paid_user_ids: set[uuid.UUID] = set()
    for user_id, price, billing_cycle in result.all():
        if price and price > 0:
            paid_user_ids.add(user_id)
            mrr += monthly_value(price, billing_cycle)

    churned = await _count(
        session,
        sub_count(Subscription.status.in_(CHURNED_STATUSES), Subscription.updated_at >= since),
    )
    base = total_active + churned
    churn_rate = round(churned / base * 100, 2) if base > 0 else 0.0

    one_time_conditions = [
        Payment.status == PaymentStatus.SUCCEEDED,
        Payment.subscription_id.is_(None),
        Payment.plan_id.is_(None),
        Payment.created_at >= since,
    ]
    if community_id is not None:
        one_time_conditions.append(
            Payment.user_id.in_(
                select(CommunityMember.user_id).where(CommunityMember.community_id == community_id)
            )
        )
    result = await session.execute(
        select(func.count(), func.coalesce(func.sum(Payment.amount), 0)).where(*one_time_conditions)
    )
    one_time_count, one_time_value = result.one()

    trials = await _count(session, sub_count(Subscription.status == SubscriptionStatus.TRIALING))
    recently_activated = await _count(
        session,
        sub_count(Subscription.status == SubscriptionStatus.ACTIVE, Subscription.start_date >= since),
    )

    return FinancialMetrics(
        total_active_subscriptions=total_active,
        number_of_paid_members=len(paid_user_ids),
        mrr=float(mrr.quantize(TWO_PLACES)),
        churn_rate_simplified=churn_rate,
        churned_last30_days_count=churned,
        one_time_sales_count_last30_days=one_time_count,
        one_time_sales_value_last30_days=float(Decimal(one_time_value).quantize(TWO_PLACES)),
        trials_in_progress_count=trials,
        recently_activated_subscriptions_last30_days=recently_activated,
        trial_conversion_rate=None,
    )


async def get_group_activity(
    session: AsyncSession,
    community_id: Optional[uuid.UUID] = None,
    *,
    now: Optional[datetime] = None,
) -> GroupActivityMetrics:
    """
    Active members are approximated by a login session whose expiry is within
    the last 30 days or later.
    """
    now = now or datetime.now(timezone.utc)
    since = now - WINDOW

    if community_id is not None:
        await _ensure_community(session, community_id)
        total_members = await _count(
            session,
            select(func.count())
            .select_from(CommunityMember)
            .where(CommunityMember.community_id == community_id),
        )
    else:
        total_members = await _count(session, select(func.count()).select_from(User))

    recent_users = select(UserSession.user_id).where(UserSession.expires >= since).distinct()
    any_recent = await _count(session, select(func.count()).select_from(recent_users.subquery()))

    if any_recent == 0:
        active_members = 0
        status = "no_recent_sessions_found"
    else:
        if community_id is not None:
            active_members = await _count(
                session,
                select(func.count())
                .select_from(CommunityMember)
                .where(
                    CommunityMember.community_id == community_id,
                    CommunityMember.user_id.in_(recent_users),
                ),
            )
        else:
            active_members = any_recent
        status = "calculated_via_recent_sessions"

    return GroupActivityMetrics(
        total_members=total_members,
        active_members_last30_days=active_members,
        monthly_active_members=None,
        daily_activity=None,
        data_status=ActivityDataStatus(active_members=status),
        context=f"community: {community_id}" if community_id else "platform_wide",
    )
