"""
Notification feed endpoints.

GET   /api/v1/notifications              - Paginated feed
PATCH /api/v1/notifications              - Mark some or all as read
GET   /api/v1/notifications/unread-count - Unread badge count
GET   /api/v1/notifications/stream       - SSE stream of live notifications
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sse_starlette.sse import EventSourceResponse

from app.core.auth import get_current_user
from app.core.database import get_session
from app.core.events import user_event_generator
from app.models.user import User
from app.services import notifications as notification_service
from hearth_shared.schemas.notifications import (
    MarkReadRequest,
    MarkReadResponse,
    NotificationListResponse,
    UnreadCountResponse,
)

router = APIRouter()


@router.get("", response_model=NotificationListResponse, tags=["Notifications"])
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=notification_service.NOTIFICATIONS_PAGE_LIMIT_MAX),
    is_read: Optional[bool] = Query(None, alias="isRead"),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await notification_service.list_notifications(
        session, user.id, page=page, limit=limit, is_read=is_read
    )


@router.patch("", response_model=MarkReadResponse, tags=["Notifications"])
async def mark_read(
    body: MarkReadRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Mark every unread notification, or the listed ones, as read."""
    if body.mark_all_as_read:
        count = await notification_service.mark_all_notifications_read(session, user.id)
        return MarkReadResponse(message="All notifications marked as read.", count=count)

    if body.notification_ids:
        count = await notification_service.mark_notifications_read(
            session, user.id, body.notification_ids
        )
        return MarkReadResponse(message="Notifications marked as read.", count=count)

    raise HTTPException(
        status_code=400,
        detail="Invalid request. Provide notificationIds array or markAllAsRead: true.",
    )


@router.get("/unread-count", response_model=UnreadCountResponse, tags=["Notifications"])
async def unread_count(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return UnreadCountResponse(
        unread_count=await notification_service.count_unread(session, user.id)
    )


@router.get("/stream", tags=["Notifications"])
async def stream_notifications(
    request: Request,
    replay: bool = Query(False),
    user: User = Depends(get_current_user),
):
    """
    Stream ``notification.created`` events for the caller via SSE.

    Emits ``: heartbeat`` comments every 30 seconds and closes with a
    ``session.revoked`` event when the caller logs out.
    """
    jti = getattr(request.state, "jti", None)
    return EventSourceResponse(
        user_event_generator(request, user.id, jti=jti, replay=replay)
    )
