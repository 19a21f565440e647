"""
Admin dashboard metrics.

Tests cover:
- Financial aggregates (MRR, churn, one-time sales, trials)
- Community scoping and unknown communities
- Group activity from login sessions
- Admin-only access
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.models.payment import Payment
from app.models.user import UserSession
from app.services.dashboard import monthly_value
from hearth_shared.schemas.common import (
    BillingCycle,
    PaymentStatus,
    SubscriptionStatus,
    UserRole,
)

from conftest import (
    add_member,
    auth_headers,
    make_community,
    make_plan,
    make_subscription,
    make_user,
)


@pytest.fixture
async def admin(session):
    return await make_user(session, name="Admin", role=UserRole.ADMIN)


async def add_login(session, user, expires):
    session.add(UserSession(user_id=user.id, jti=uuid.uuid4().hex, expires=expires))
    await session.commit()


class TestMonthlyValue:

    def test_cycles(self):
        assert monthly_value(Decimal("29"), BillingCycle.MONTHLY) == Decimal("29")
        assert monthly_value(Decimal("120"), BillingCycle.YEARLY) == Decimal("10")
        assert monthly_value(Decimal("50"), BillingCycle.ONE_TIME) == Decimal("0")


class TestFinancials:

    @pytest.mark.asyncio
    async def test_platform_metrics(self, client, session, admin):
        monthly = await make_plan(session, price="29.00", name="Monthly")
        yearly = await make_plan(session, price="120.00", billing_cycle=BillingCycle.YEARLY, name="Yearly")
        free = await make_plan(session, price="0", name="Free")

        u1, u2, u3, u4, u5 = [await make_user(session) for _ in range(5)]
        await make_subscription(session, u1, monthly)
        await make_subscription(session, u2, yearly)
        await make_subscription(session, u3, free)
        await make_subscription(session, u4, monthly, status=SubscriptionStatus.CANCELED)
        await make_subscription(session, u5, monthly, status=SubscriptionStatus.TRIALING)
        session.add(
            Payment(
                user_id=u1.id,
                amount=Decimal("15.00"),
                currency="USD",
                gateway_id="ch_once",
                status=PaymentStatus.SUCCEEDED,
            )
        )
        await session.commit()

        response = await client.get("/api/v1/dashboard/financials", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.json() == {
            "totalActiveSubscriptions": 3,
            "numberOfPaidMembers": 2,
            "mrr": 39.0,
            "churnRateSimplified": 25.0,
            "churnedLast30DaysCount": 1,
            "oneTimeSalesCountLast30Days": 1,
            "oneTimeSalesValueLast30Days": 15.0,
            "trialsInProgressCount": 1,
            "recentlyActivatedSubscriptionsLast30Days": 3,
            "trialConversionRate": None,
        }

    @pytest.mark.asyncio
    async def test_empty_platform(self, client, session, admin):
        response = await client.get("/api/v1/dashboard/financials", headers=auth_headers(admin))

        body = response.json()
        assert body["mrr"] == 0.0
        assert body["churnRateSimplified"] == 0.0
        assert body["totalActiveSubscriptions"] == 0

    @pytest.mark.asyncio
    async def test_community_scope(self, client, session, admin):
        owner = await make_user(session)
        community = await make_community(session, owner)
        scoped = await make_plan(session, price="10.00", community=community, name="Scoped")
        elsewhere = await make_plan(session, price="99.00", name="Elsewhere")
        await make_subscription(session, owner, scoped)
        await make_subscription(session, owner, elsewhere)

        response = await client.get(
            "/api/v1/dashboard/financials",
            params={"communityId": str(community.id)},
            headers=auth_headers(admin),
        )

        body = response.json()
        assert body["totalActiveSubscriptions"] == 1
        assert body["mrr"] == 10.0

    @pytest.mark.asyncio
    async def test_unknown_community(self, client, session, admin):
        community_id = uuid.uuid4()

        response = await client.get(
            "/api/v1/dashboard/financials",
            params={"communityId": str(community_id)},
            headers=auth_headers(admin),
        )

        assert response.status_code == 404
        assert response.json() == {"error": f"Community with ID {community_id} not found."}

    @pytest.mark.asyncio
    async def test_members_are_forbidden(self, client, session):
        member = await make_user(session)

        response = await client.get("/api/v1/dashboard/financials", headers=auth_headers(member))

        assert response.status_code == 403


class TestGroupActivity:

    @pytest.mark.asyncio
    async def test_no_sessions(self, client, session, admin):
        response = await client.get("/api/v1/dashboard/group-activity", headers=auth_headers(admin))

        body = response.json()
        assert body["totalMembers"] == 1
        assert body["activeMembersLast30Days"] == 0
        assert body["monthlyActiveMembers"] is None
        assert body["dailyActivity"] is None
        assert body["dataStatus"] == {
            "activeMembers": "no_recent_sessions_found",
            "detailedActivity": "requires_advanced_analytics_or_dedicated_tracking",
        }
        assert body["context"] == "platform_wide"

    @pytest.mark.asyncio
    @pytest.mark.filterwarnings("error::sqlalchemy.exc.SAWarning")
    async def test_active_from_recent_sessions(self, client, session, admin):
        now = datetime.now(timezone.utc)
        owner = await make_user(session)
        active_member = await make_user(session)
        lapsed_member = await make_user(session)
        community = await make_community(session, owner)
        await add_member(session, community, active_member)
        await add_member(session, community, lapsed_member)

        await add_login(session, owner, now + timedelta(hours=1))
        await add_login(session, owner, now - timedelta(days=2))
        await add_login(session, active_member, now - timedelta(days=29))
        await add_login(session, lapsed_member, now - timedelta(days=40))

        platform = (
            await client.get("/api/v1/dashboard/group-activity", headers=auth_headers(admin))
        ).json()
        assert platform["totalMembers"] == 4
        assert platform["activeMembersLast30Days"] == 2
        assert platform["dataStatus"]["activeMembers"] == "calculated_via_recent_sessions"

        scoped = (
            await client.get(
                "/api/v1/dashboard/group-activity",
                params={"communityId": str(community.id)},
                headers=auth_headers(admin),
            )
        ).json()
        assert scoped["totalMembers"] == 3
        assert scoped["activeMembersLast30Days"] == 2
        assert scoped["context"] == f"community: {community.id}"

    @pytest.mark.asyncio
    async def test_unknown_community(self, client, session, admin):
        response = await client.get(
            "/api/v1/dashboard/group-activity",
            params={"communityId": str(uuid.uuid4())},
            headers=auth_headers(admin),
        )
        assert response.status_code == 404
