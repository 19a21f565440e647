"""Chat channel and message schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import UUID4, Field

from .common import CamelModel
from .notifications import ActorSummary


class PostMessageRequest(CamelModel):
    content: Optional[str] = None
    attachment_url: Optional[str] = None
    attachment_type: Optional[str] = None


class MessageResponse(CamelModel):
    id: UUID4
    channel_id: UUID4
    sender_id: UUID4
    sender: Optional[ActorSummary] = None
    content: str
    attachment_url: Optional[str] = None
    attachment_type: Optional[str] = None
    created_at: datetime


class MessageListResponse(CamelModel):
    messages: List[MessageResponse]
    next_cursor: Optional[str] = None


class DirectChannelRequest(CamelModel):
    target_user_id: UUID4


class ChannelResponse(CamelModel):
    id: UUID4
    community_id: Optional[UUID4] = None
    name: Optional[str] = None
    image: Optional[str] = None
    is_direct_message: bool
    last_message_at: Optional[datetime] = None
    member_count: int = 0
    unread_count: int = 0
    created_at: datetime


class ChannelReadResponse(CamelModel):
    message: str
    last_read_at: datetime


class ChannelListResponse(CamelModel):
    data: List[ChannelResponse] = Field(default_factory=list)
