#!/usr/bin/env python3
"""Seed a development database with an admin, members, a community, plans and a chat.

Usage:
    uv run python scripts/seed_dev_data.py

Requires HEARTH_DATABASE_URL (or defaults to localhost). Tables are created if missing.
"""

import asyncio
import uuid
from decimal import Decimal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import hash_password
from app.core.database import get_session_context, init_db
from app.core.logging import configure_logging
from app.models.chat import ChatChannel, ChatChannelMember, ChatMessage
from app.models.community import Community, CommunityMember
from app.models.plan import Plan
from app.models.subscription import Subscription
from app.models.user import User
from app.services.notifications import create_notification
from hearth_shared.schemas.common import (
    BillingCycle,
    CommunityRole,
    NotificationType,
    SubscriptionStatus,
    UserRole,
)

log = structlog.get_logger()

# Deterministic UUIDs for reproducibility
ADMIN_ID = uuid.UUID("00000000-0000-4000-8000-000000000010")
MEMBER_IDS = [uuid.UUID(f"00000000-0000-4000-8000-0000000000{i + 20}") for i in range(5)]
COMMUNITY_ID = uuid.UUID("00000000-0000-4000-8000-000000000100")
FREE_PLAN_ID = uuid.UUID("00000000-0000-4000-8000-000000000200")
PRO_PLAN_ID = uuid.UUID("00000000-0000-4000-8000-000000000201")
CHANNEL_ID = uuid.UUID("00000000-0000-4000-8000-000000000300")

DEV_PASSWORD = "hearth-dev-password"


async def _seed(session: AsyncSession) -> None:
    if await session.get(User, ADMIN_ID):
        log.info("seed.already_present")
        return

    password_hash = hash_password(DEV_PASSWORD)
    session.add(
        User(
            id=ADMIN_ID,
            email="admin@hearth.dev",
            name="Hearth Admin",
            username="admin",
            password_hash=password_hash,
            role=UserRole.ADMIN,
        )
    )
    names = ["Alice", "Bob", "Carol", "Dan", "Erin"]
    for index, (user_id, name) in enumerate(zip(MEMBER_IDS, names)):
        session.add(
            User(
                id=user_id,
                email=f"{name.lower()}@hearth.dev",
                name=name,
                username=name.lower(),
                password_hash=password_hash,
                points=(index + 1) * 15,
                stripe_customer_id=f"cus_dev_{name.lower()}",
            )
        )
    await session.flush()

    session.add(Community(id=COMMUNITY_ID, name="Sourdough Club", slug="sourdough-club", owner_id=ADMIN_ID))
    await session.flush()
    session.add(CommunityMember(community_id=COMMUNITY_ID, user_id=ADMIN_ID, role=CommunityRole.OWNER))
    for user_id in MEMBER_IDS:
        session.add(CommunityMember(community_id=COMMUNITY_ID, user_id=user_id))

    session.add(Plan(id=FREE_PLAN_ID, community_id=COMMUNITY_ID, name="Free", price=Decimal("0")))
    session.add(
        Plan(
            id=PRO_PLAN_ID,
            community_id=COMMUNITY_ID,
            name="Pro",
            price=Decimal("29.00"),
            billing_cycle=BillingCycle.MONTHLY,
            stripe_price_id="price_dev_pro",
        )
    )
    await session.flush()

    session.add(
        Subscription(
            user_id=MEMBER_IDS[0],
            plan_id=PRO_PLAN_ID,
            community_id=COMMUNITY_ID,
            status=SubscriptionStatus.ACTIVE,
            stripe_subscription_id="sub_dev_alice",
        )
    )
    session.add(
        Subscription(
            user_id=MEMBER_IDS[1],
            plan_id=FREE_PLAN_ID,
            community_id=COMMUNITY_ID,
            status=SubscriptionStatus.ACTIVE,
        )
    )

    session.add(ChatChannel(id=CHANNEL_ID, community_id=COMMUNITY_ID, name="general"))
    await session.flush()
    for user_id in [ADMIN_ID, *MEMBER_IDS]:
        session.add(ChatChannelMember(channel_id=CHANNEL_ID, user_id=user_id))
    session.add(
        ChatMessage(channel_id=CHANNEL_ID, sender_id=ADMIN_ID, content="Welcome to the Sourdough Club!")
    )

    await create_notification(
        session,
        MEMBER_IDS[0],
        NotificationType.ADMIN_ANNOUNCEMENT,
        actor_id=ADMIN_ID,
        community_id=COMMUNITY_ID,
        title="Welcome!",
        message="Say hi in #general.",
    )
    log.info("seed.complete", users=len(MEMBER_IDS) + 1, community=str(COMMUNITY_ID))


async def seed() -> None:
    configure_logging("info", "text")
    await init_db()
    async with get_session_context() as session:
        await _seed(session)


if __name__ == "__main__":
    asyncio.run(seed())
