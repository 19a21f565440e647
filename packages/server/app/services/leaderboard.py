"""
Community leaderboard: members ranked by their points counter.
"""

from __future__ import annotations

import math
import uuid

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.community import Community, CommunityMember
from app.models.user import User
from hearth_shared.schemas.communities import LeaderboardEntry, LeaderboardResponse, LeaderboardUser

LEADERBOARD_LIMIT_MAX = 100


async def get_leaderboard(
    session: AsyncSession,
    community_id: uuid.UUID,
    page: int = 1,
    limit: int = 10,
) -> LeaderboardResponse:
    """Page ``page`` of the community's members by points desc, ties by user id."""
    community = await session.get(Community, community_id)
    if not community:
        raise HTTPException(status_code=404, detail="Community not found.")

    offset = (page - 1) * limit
    total = (
        await session.execute(
            select(func.count())
            .select_from(CommunityMember)
            .where(CommunityMember.community_id == community_id)
        )
    ).scalar_one()

    result = await session.execute(
        select(User)
        .join(CommunityMember, CommunityMember.user_id == User.id)
        .where(CommunityMember.community_id == community_id)
        .order_by(User.points.desc(), User.id.asc())
        .offset(offset)
        .limit(limit)
    )
    members = result.scalars().all()

    entries = [
        LeaderboardEntry(
            rank=offset + index + 1,
            user=LeaderboardUser.model_validate(user),
            score=user.points,
        )
        for index, user in enumerate(members)
    ]
    return LeaderboardResponse(
        leaderboard=entries,
        current_page=page,
        total_pages=math.ceil(total / limit),
        total_entries=total,
    )
