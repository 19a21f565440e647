"""
Chat endpoints.

GET  /api/v1/chat/channels                     - Caller's channels
POST /api/v1/chat/channels                     - Find or create a direct message channel
GET  /api/v1/chat/channels/{channelId}/messages - Message history (cursor paginated)
POST /api/v1/chat/channels/{channelId}/messages - Post a message
POST /api/v1/chat/channels/{channelId}/read     - Mark the channel read
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import chat as chat_service
from hearth_shared.schemas.chat import (
    ChannelListResponse,
    ChannelReadResponse,
    ChannelResponse,
    DirectChannelRequest,
    MessageListResponse,
    MessageResponse,
    PostMessageRequest,
)

router = APIRouter()


@router.get("/channels", response_model=ChannelListResponse, tags=["Chat"])
async def list_channels(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return ChannelListResponse(data=await chat_service.list_channels(session, user.id))


@router.post("/channels", response_model=ChannelResponse, tags=["Chat"])
async def open_direct_channel(
    body: DirectChannelRequest,
    response: Response,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Returns 201 when the channel was created, 200 when it already existed."""
    channel, created = await chat_service.get_or_create_direct_channel(
        session, user.id, body.target_user_id
    )
    response.status_code = 201 if created else 200
    return channel


@router.get("/channels/{channelId}/messages", response_model=MessageListResponse, tags=["Chat"])
async def list_messages(
    channelId: uuid.UUID,
    cursor: Optional[uuid.UUID] = Query(None),
    limit: int = Query(30, ge=1, le=chat_service.MESSAGES_LIMIT_MAX),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await chat_service.list_messages(session, channelId, user.id, cursor=cursor, limit=limit)


@router.post(
    "/channels/{channelId}/messages",
    response_model=MessageResponse,
    status_code=201,
    tags=["Chat"],
)
async def post_message(
    channelId: uuid.UUID,
    body: PostMessageRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await chat_service.post_message(session, channelId, user, body)


@router.post("/channels/{channelId}/read", response_model=ChannelReadResponse, tags=["Chat"])
async def mark_channel_read(
    channelId: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    last_read_at = await chat_service.mark_channel_read(session, channelId, user.id)
    return ChannelReadResponse(message="Channel marked as read.", last_read_at=last_read_at)
