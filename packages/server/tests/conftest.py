"""
Shared fixtures: a throwaway SQLite database per test, a mocked Redis client
and an HTTP client wired to the app with the test database.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Optional
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import app.models  # noqa: F401  populate metadata
from app.core.auth import create_jwt
from app.core.database import get_session
from app.main import app
from app.models.community import Community, CommunityMember
from app.models.plan import Plan
from app.models.subscription import Subscription
from app.models.user import User
from hearth_shared.schemas.common import (
    BillingCycle,
    CommunityRole,
    SubscriptionStatus,
    UserRole,
)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'hearth.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture(autouse=True)
def redis_mock():
    """Stands in for redis.asyncio; ``publish`` and the buffer pipeline are recorded."""
    redis = AsyncMock()
    redis.exists.return_value = 0
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[])
    pipe.__aenter__ = AsyncMock(return_value=pipe)
    pipe.__aexit__ = AsyncMock(return_value=False)
    redis.pipeline = MagicMock(return_value=pipe)

    get_redis = AsyncMock(return_value=redis)
    with patch("app.core.events.get_redis", get_redis), patch("app.core.auth.get_redis", get_redis):
        yield redis


@pytest.fixture
async def client(session_factory):
    async def _get_session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_session] = _get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Data helpers
# ---------------------------------------------------------------------------

def auth_headers(user: User) -> dict[str, str]:
    token, _jti, _exp = create_jwt(user.id, UserRole(user.role).value)
    return {"Authorization": f"Bearer {token}"}


async def make_user(
    session: AsyncSession,
    *,
    name: Optional[str] = None,
    role: UserRole = UserRole.MEMBER,
    points: int = 0,
    stripe_customer_id: Optional[str] = None,
    user_id: Optional[uuid.UUID] = None,
) -> User:
    user_id = user_id or uuid.uuid4()
    user = User(
        id=user_id,
        email=f"{user_id.hex[:12]}@example.com",
        name=name,
        username=f"u{user_id.hex[:12]}",
        role=role,
        points=points,
        stripe_customer_id=stripe_customer_id,
    )
    session.add(user)
    await session.commit()
    return user


async def make_community(session: AsyncSession, owner: User, name: str = "Makers") -> Community:
    community = Community(name=name, slug=f"{name.lower()}-{uuid.uuid4().hex[:6]}", owner_id=owner.id)
    session.add(community)
    await session.flush()
    session.add(
        CommunityMember(community_id=community.id, user_id=owner.id, role=CommunityRole.OWNER)
    )
    await session.commit()
    return community


async def add_member(session: AsyncSession, community: Community, user: User) -> CommunityMember:
    member = CommunityMember(community_id=community.id, user_id=user.id)
    session.add(member)
    await session.commit()
    return member


async def make_plan(
    session: AsyncSession,
    *,
    price: str = "29.00",
    billing_cycle: BillingCycle = BillingCycle.MONTHLY,
    community: Optional[Community] = None,
    stripe_price_id: Optional[str] = None,
    name: str = "Pro",
) -> Plan:
    plan = Plan(
        name=name,
        price=Decimal(price),
        billing_cycle=billing_cycle,
        community_id=community.id if community else None,
        stripe_price_id=stripe_price_id,
    )
    session.add(plan)
    await session.commit()
    return plan


async def make_subscription(
    session: AsyncSession,
    user: User,
    plan: Plan,
    *,
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    stripe_subscription_id: Optional[str] = None,
    **fields,
) -> Subscription:
    subscription = Subscription(
        user_id=user.id,
        plan_id=plan.id,
        community_id=plan.community_id,
        status=status,
        stripe_subscription_id=stripe_subscription_id,
        **fields,
    )
    session.add(subscription)
    await session.commit()
    return subscription
