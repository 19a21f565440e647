"""
Community endpoints.

GET  /api/v1/communities/{communityId}/leaderboard - Members ranked by points
POST /api/v1/communities/{communityId}/join        - Join as a member
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import communities as community_service
from app.services import leaderboard as leaderboard_service
from hearth_shared.schemas.communities import LeaderboardResponse, MembershipResponse

router = APIRouter()


@router.get("/{communityId}/leaderboard", response_model=LeaderboardResponse, tags=["Communities"])
async def get_leaderboard(
    communityId: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=leaderboard_service.LEADERBOARD_LIMIT_MAX),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await leaderboard_service.get_leaderboard(session, communityId, page=page, limit=limit)


@router.post(
    "/{communityId}/join",
    response_model=MembershipResponse,
    status_code=201,
    tags=["Communities"],
)
async def join_community(
    communityId: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Join the community; the owner is notified."""
    membership = await community_service.join_community(session, user, communityId)
    return MembershipResponse.model_validate(membership)
