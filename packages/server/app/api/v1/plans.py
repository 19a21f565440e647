"""
GET /api/v1/plans - Active plans, cheapest first
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session
from app.services import subscriptions as subscription_service
from hearth_shared.schemas.billing import PlanResponse

router = APIRouter()


@router.get("", response_model=List[PlanResponse], tags=["Plans"])
async def list_plans(
    community_id: Optional[uuid.UUID] = Query(None, alias="communityId"),
    session: AsyncSession = Depends(get_session),
):
    plans = await subscription_service.list_plans(session, community_id)
    return [PlanResponse.model_validate(plan) for plan in plans]
