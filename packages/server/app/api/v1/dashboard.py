"""
Admin dashboard endpoints. Platform admins only.

GET /api/v1/dashboard/financials     - Subscription and sales metrics
GET /api/v1/dashboard/group-activity - Membership and activity metrics
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import require_admin
from app.core.database import get_session
from app.models.user import User
from app.services import dashboard as dashboard_service
from hearth_shared.schemas.dashboard import FinancialMetrics, GroupActivityMetrics

router = APIRouter()


@router.get("/financials", response_model=FinancialMetrics, tags=["Dashboard"])
async def get_financials(
    community_id: Optional[uuid.UUID] = Query(None, alias="communityId"),
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await dashboard_service.get_financials(session, community_id)


@router.get("/group-activity", response_model=GroupActivityMetrics, tags=["Dashboard"])
async def get_group_activity(
    community_id: Optional[uuid.UUID] = Query(None, alias="communityId"),
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    return await dashboard_service.get_group_activity(session, community_id)
