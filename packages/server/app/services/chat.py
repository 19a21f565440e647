"""
Chat service: channels, direct messages, message history and read markers.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import and_, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.base import as_utc
from app.models.chat import ChatChannel, ChatChannelMember, ChatMessage
from app.models.user import User
from app.services.notifications import deliver_in_app, fan_out
from hearth_shared.schemas.chat import (
    ChannelResponse,
    MessageListResponse,
    MessageResponse,
    PostMessageRequest,
)
from hearth_shared.schemas.common import NotificationType
from hearth_shared.schemas.notifications import ActorSummary

log = structlog.get_logger()

MESSAGES_LIMIT_MAX = 100
PREVIEW_LENGTH = 80


# --- Helpers ---


async def require_membership(
    session: AsyncSession, channel_id: uuid.UUID, user_id: uuid.UUID
) -> ChatChannelMember:
    membership = await session.get(ChatChannelMember, (channel_id, user_id))
    if not membership:
        raise HTTPException(
            status_code=403, detail="Forbidden. You are not a member of this channel."
        )
    return membership


async def _member_ids(session: AsyncSession, channel_id: uuid.UUID) -> list[uuid.UUID]:
    result = await session.execute(
        select(ChatChannelMember.user_id).where(ChatChannelMember.channel_id == channel_id)
    )
    return list(result.scalars().all())


async def _unread_count(
    session: AsyncSession, channel_id: uuid.UUID, user_id: uuid.UUID, last_read_at: Optional[datetime]
) -> int:
    conditions = [
        ChatMessage.channel_id == channel_id,
        ChatMessage.sender_id != user_id,
        ChatMessage.deleted_at.is_(None),
    ]
    if last_read_at is not None:
        conditions.append(ChatMessage.created_at > last_read_at)
    result = await session.execute(select(func.count()).select_from(ChatMessage).where(*conditions))
    return result.scalar_one()


async def _channel_response(
    session: AsyncSession, channel: ChatChannel, membership: ChatChannelMember
) -> ChannelResponse:
    member_ids = await _member_ids(session, channel.id)
    response = ChannelResponse.model_validate(channel)
    response.member_count = len(member_ids)
    response.unread_count = await _unread_count(
        session, channel.id, membership.user_id, membership.last_read_at
    )
    if channel.is_direct_message:
        others = [uid for uid in member_ids if uid != membership.user_id]
        other = await session.get(User, others[0]) if others else None
        response.name = (other.name or other.username if other else None) or "Direct Message"
        response.image = other.image if other else None
    return response


def _message_response(message: ChatMessage, sender: Optional[User]) -> MessageResponse:
    response = MessageResponse.model_validate(message)
    response.sender = ActorSummary.model_validate(sender) if sender else None
    return response


# --- Channels ---


async def list_channels(session: AsyncSession, user_id: uuid.UUID) -> list[ChannelResponse]:
    """Channels the user belongs to, most recent activity first."""
    result = await session.execute(
        select(ChatChannel, ChatChannelMember)
        .join(ChatChannelMember, ChatChannelMember.channel_id == ChatChannel.id)
        .where(ChatChannelMember.user_id == user_id)
        .order_by(
            ChatChannel.last_message_at.is_(None),
            ChatChannel.last_message_at.desc(),
            ChatChannel.created_at.desc(),
        )
    )
    return [await _channel_response(session, channel, member) for channel, member in result.all()]


async def get_or_create_direct_channel(
    session: AsyncSession, user_id: uuid.UUID, target_user_id: uuid.UUID
) -> tuple[ChannelResponse, bool]:
    """Find the DM channel between two users or create it. Returns (channel, created)."""
    if target_user_id == user_id:
        raise HTTPException(status_code=400, detail="Cannot create a DM channel with yourself.")
    if not await session.get(User, target_user_id):
        raise HTTPException(status_code=404, detail="User not found.")

    mine = select(ChatChannelMember.channel_id).where(ChatChannelMember.user_id == user_id)
    theirs = select(ChatChannelMember.channel_id).where(ChatChannelMember.user_id == target_user_id)
    result = await session.execute(
        select(ChatChannel).where(
            ChatChannel.is_direct_message.is_(True),
            ChatChannel.id.in_(mine),
            ChatChannel.id.in_(theirs),
        )
    )
    channel = result.scalars().first()
    created = False
    if channel is None:
        channel = ChatChannel(is_direct_message=True)
        session.add(channel)
        await session.flush()
        session.add(ChatChannelMember(channel_id=channel.id, user_id=user_id))
        session.add(ChatChannelMember(channel_id=channel.id, user_id=target_user_id))
        await session.flush()
        created = True
        log.info("chat.dm_created", channel_id=str(channel.id), user_id=str(user_id))

    membership = await require_membership(session, channel.id, user_id)
    return await _channel_response(session, channel, membership), created


# --- Messages ---


async def list_messages(
    session: AsyncSession,
    channel_id: uuid.UUID,
    user_id: uuid.UUID,
    cursor: Optional[uuid.UUID] = None,
    limit: int = 30,
) -> MessageListResponse:
    """
    Cursor-based pagination, newest first. ``cursor`` is the id of the oldest
    message already seen; the page is returned oldest first.
    """
    await require_membership(session, channel_id, user_id)

    conditions = [ChatMessage.channel_id == channel_id, ChatMessage.deleted_at.is_(None)]
    if cursor is not None:
        anchor = await session.get(ChatMessage, cursor)
        if not anchor or anchor.channel_id != channel_id:
            raise HTTPException(status_code=400, detail="Invalid cursor.")
        conditions.append(
            or_(
                ChatMessage.created_at < anchor.created_at,
                and_(ChatMessage.created_at == anchor.created_at, ChatMessage.id < anchor.id),
            )
        )

    result = await session.execute(
        select(ChatMessage)
        .where(*conditions)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .limit(limit + 1)  # one extra to detect more
    )
    messages = list(result.scalars().all())
    has_more = len(messages) > limit
    messages = messages[:limit]

    sender_ids = {m.sender_id for m in messages}
    senders: dict[uuid.UUID, User] = {}
    if sender_ids:
        result = await session.execute(select(User).where(User.id.in_(sender_ids)))
        senders = {u.id: u for u in result.scalars().all()}

    next_cursor = str(messages[-1].id) if has_more and messages else None
    return MessageListResponse(
        messages=[_message_response(m, senders.get(m.sender_id)) for m in reversed(messages)],
        next_cursor=next_cursor,
    )


async def post_message(
    session: AsyncSession,
    channel_id: uuid.UUID,
    sender: User,
    body: PostMessageRequest,
) -> MessageResponse:
    """
    Create the message, move the channel's last-message pointer and the
    sender's read marker in one transaction, then notify the other members.
    """
    content = (body.content or "").strip()
    if not content and not body.attachment_url:
        raise HTTPException(
            status_code=400,
            detail="Message content cannot be empty unless an attachment is provided.",
        )
    if body.attachment_url and not body.attachment_type:
        raise HTTPException(
            status_code=400,
            detail="Attachment type is required if attachment URL is provided.",
        )

    await require_membership(session, channel_id, sender.id)
    channel = await session.get(ChatChannel, channel_id)

    now = datetime.now(timezone.utc)
    try:
        message = ChatMessage(
            channel_id=channel_id,
            sender_id=sender.id,
            content=body.content or "",
            attachment_url=body.attachment_url,
            attachment_type=body.attachment_type,
            created_at=now,
            updated_at=now,
        )
        session.add(message)
        await session.flush()

        channel.last_message_id = message.id
        channel.last_message_at = now
        await session.execute(
            update(ChatChannelMember)
            .where(ChatChannelMember.channel_id == channel_id, ChatChannelMember.user_id == sender.id)
            .values(last_read_at=now)
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    log.info("chat.message_posted", channel_id=str(channel_id), message_id=str(message.id))

    recipients = [uid for uid in await _member_ids(session, channel_id) if uid != sender.id]
    preview = content[:PREVIEW_LENGTH] or "Sent an attachment"
    notifications = await fan_out(
        session,
        recipients,
        NotificationType.NEW_CHAT_MESSAGE,
        actor_id=sender.id,
        community_id=channel.community_id,
        related_entity_type="chat_message",
        related_entity_id=str(message.id),
        title=f"New message from {sender.name or sender.username or 'someone'}",
        message=preview,
        data={"channelId": str(channel_id), "messageId": str(message.id)},
    )
    await session.commit()
    await deliver_in_app(session, notifications)

    return _message_response(message, sender)


async def mark_channel_read(
    session: AsyncSession, channel_id: uuid.UUID, user_id: uuid.UUID
) -> datetime:
    membership = await require_membership(session, channel_id, user_id)
    membership.last_read_at = datetime.now(timezone.utc)
    session.add(membership)
    await session.flush()
    return as_utc(membership.last_read_at)
