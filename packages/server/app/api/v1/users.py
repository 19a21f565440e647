"""
Per-user endpoints. Callers may only address themselves.

GET /api/v1/users/{userId}/notification-settings - Global settings per type plus community overrides
PUT /api/v1/users/{userId}/notification-settings - Upsert a batch of partial settings
GET /api/v1/users/{userId}/payments              - Payment history, newest first
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, require_self
from app.core.database import get_session
from app.models.user import User
from app.services import notifications as notification_service
from app.services import users as user_service
from hearth_shared.schemas.billing import PaymentListResponse, PaymentResponse
from hearth_shared.schemas.notifications import (
    NotificationSettingResponse,
    NotificationSettingsUpdateResponse,
    NotificationSettingUpdate,
)

router = APIRouter()


@router.get(
    "/{userId}/notification-settings",
    response_model=List[NotificationSettingResponse],
    tags=["Notification Settings"],
)
async def get_notification_settings(
    userId: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Types without a saved row come back as defaults with ``id`` null."""
    require_self(userId, user)
    return await notification_service.get_notification_settings(session, userId)


@router.put(
    "/{userId}/notification-settings",
    response_model=NotificationSettingsUpdateResponse,
    tags=["Notification Settings"],
)
async def update_notification_settings(
    userId: uuid.UUID,
    body: List[NotificationSettingUpdate],
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    require_self(userId, user)
    rows, skipped = await notification_service.upsert_notification_settings(session, userId, body)
    return NotificationSettingsUpdateResponse(
        message="Notification settings updated successfully.",
        updated_settings=[NotificationSettingResponse.model_validate(row) for row in rows],
        skipped=skipped,
    )


@router.get("/{userId}/payments", response_model=PaymentListResponse, tags=["Payments"])
async def list_payments(
    userId: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    require_self(userId, user)
    payments = await user_service.list_payments(session, userId)
    return PaymentListResponse(data=[PaymentResponse.model_validate(p) for p in payments])
