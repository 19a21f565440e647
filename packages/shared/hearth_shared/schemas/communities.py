"""Community membership and leaderboard schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import UUID4

from .common import CamelModel, CommunityRole


class LeaderboardUser(CamelModel):
    id: UUID4
    name: Optional[str] = None
    username: Optional[str] = None
    image: Optional[str] = None
    points: int
    level: int


class LeaderboardEntry(CamelModel):
    rank: int
    user: LeaderboardUser
    score: int


class LeaderboardResponse(CamelModel):
    leaderboard: List[LeaderboardEntry]
    current_page: int
    total_pages: int
    total_entries: int


class MembershipResponse(CamelModel):
    community_id: UUID4
    user_id: UUID4
    role: CommunityRole
    joined_at: datetime
