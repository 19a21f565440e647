"""
Community membership.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.community import Community, CommunityMember
from app.models.user import User
from app.services.notifications import deliver_in_app, fan_out
from hearth_shared.schemas.common import CommunityRole, NotificationType

log = structlog.get_logger()

JOIN_POINTS = 10


async def join_community(
    session: AsyncSession, user: User, community_id: uuid.UUID
) -> CommunityMember:
    """Add ``user`` as a member, award join points and notify the owner."""
    community = await session.get(Community, community_id)
    if not community:
        raise HTTPException(status_code=404, detail="Community not found.")
    if await session.get(CommunityMember, (community_id, user.id)):
        raise HTTPException(status_code=409, detail="You are already a member of this community.")

    membership = CommunityMember(
        community_id=community_id, user_id=user.id, role=CommunityRole.MEMBER
    )
    session.add(membership)
    await session.execute(
        update(User).where(User.id == user.id).values(points=User.points + JOIN_POINTS)
    )
    await session.flush()

    notifications = await fan_out(
        session,
        [community.owner_id],
        NotificationType.NEW_MEMBER_JOINED_COMMUNITY,
        actor_id=user.id,
        community_id=community_id,
        related_entity_type="user",
        related_entity_id=str(user.id),
        title="New member",
        message=f"{user.name or user.username or 'Someone'} joined {community.name}.",
    )
    await session.commit()
    log.info("community.member_joined", community_id=str(community_id), user_id=str(user.id))
    await deliver_in_app(session, notifications)
    return membership
