"""
Notification service: creation and fan-out, read state, delivery settings.

Rows are written unconditionally; delivery settings only decide whether a
live in-app event is pushed to the recipient's stream.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Iterable, Sequence
from typing import Any, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.events import publish_user_event
from app.models.community import Community
from app.models.notification import Notification, UserNotificationSetting
from app.models.user import User
from hearth_shared.schemas.common import NOTIFICATION_TYPE_NAMES, NotificationType
from hearth_shared.schemas.notifications import (
    DEFAULT_EMAIL_ENABLED,
    DEFAULT_IN_APP_ENABLED,
    DEFAULT_PUSH_ENABLED,
    ActorSummary,
    CommunitySummary,
    EffectiveSetting,
    NotificationListResponse,
    NotificationResponse,
    NotificationSettingResponse,
    NotificationSettingUpdate,
)

log = structlog.get_logger()

NOTIFICATIONS_PAGE_LIMIT_MAX = 50


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------

def friendly_type_name(notification_type: NotificationType | str) -> str:
    """Human readable label used by the settings screen."""
    try:
        return NOTIFICATION_TYPE_NAMES[NotificationType(notification_type)]
    except (KeyError, ValueError):
        return str(notification_type).replace("_", " ").title()


def notification_link_and_text(
    notification: Notification,
    actor: Optional[User] = None,
    community: Optional[Community] = None,
) -> tuple[str, str]:
    """Return ``(href, text)`` for rendering a notification in a feed."""
    href = "/app/notifications"
    data = notification.data or {}
    actor_name = (actor.name if actor else None) or "Someone"
    community_ref = (community.slug if community else None) or notification.community_id
    community_name = (community.name if community else None) or "your community"
    entity_type = notification.related_entity_type
    entity_id = notification.related_entity_id
    posts_base = f"/app/communities/{community_ref}/posts"

    kind = NotificationType(notification.type)
    if kind == NotificationType.POST_COMMENT:
        text = f"{actor_name} commented on your post."
        if entity_type == "post" and entity_id:
            href = f"{posts_base}/{entity_id}"
            if "commentId" in data:
                href += f"#comment-{data['commentId']}"
        elif "postId" in data:
            href = f"/app/posts/{data['postId']}"
    elif kind == NotificationType.POST_LIKE:
        text = f"{actor_name} liked your post."
        if entity_type == "post" and entity_id:
            href = f"{posts_base}/{entity_id}"
    elif kind == NotificationType.COMMENT_REPLY:
        text = f"{actor_name} replied to your comment."
        if "postId" in data and "commentId" in data:
            href = f"{posts_base}/{data['postId']}#comment-{data['commentId']}"
    elif kind in (NotificationType.MENTION_IN_POST, NotificationType.MENTION_IN_COMMENT):
        text = f"{actor_name} mentioned you."
        if entity_type == "post" and entity_id:
            href = f"{posts_base}/{entity_id}"
        elif entity_type == "comment" and entity_id and "postId" in data:
            href = f"{posts_base}/{data['postId']}#comment-{entity_id}"
    elif kind == NotificationType.EVENT_CREATED:
        title = notification.title or data.get("eventTitle") or "New Event"
        text = f'New event: "{title}" in {community_name}.'
        if entity_type == "event" and entity_id and notification.community_id:
            href = f"/app/communities/{community_ref}/events/{entity_id}"
    elif kind == NotificationType.EVENT_REMINDER:
        title = notification.title or data.get("eventTitle") or "Event"
        text = f'Reminder: "{title}" is starting soon.'
        if entity_type == "event" and entity_id and notification.community_id:
            href = f"/app/communities/{community_ref}/events/{entity_id}"
    else:
        text = (
            notification.title
            or notification.message
            or f"You have a new notification of type: {kind.value}."
        )
    return href, text


# ---------------------------------------------------------------------------
# Creation & fan-out
# ---------------------------------------------------------------------------

async def create_notification(
    session: AsyncSession,
    recipient_id: uuid.UUID,
    notification_type: NotificationType,
    *,
    actor_id: Optional[uuid.UUID] = None,
    community_id: Optional[uuid.UUID] = None,
    related_entity_type: Optional[str] = None,
    related_entity_id: Optional[str] = None,
    title: Optional[str] = None,
    message: Optional[str] = None,
    data: Optional[dict[str, Any]] = None,
) -> Notification:
    """Persist one unread notification. No channel routing happens here."""
    notification = Notification(
        user_id=recipient_id,
        type=notification_type,
        actor_id=actor_id,
        community_id=community_id,
        related_entity_type=related_entity_type,
        related_entity_id=str(related_entity_id) if related_entity_id is not None else None,
        title=title,
        message=message,
        data=data,
        is_read=False,
    )
    session.add(notification)
    await session.flush()
    log.info(
        "notification.created",
        notification_id=str(notification.id),
        user_id=str(recipient_id),
        type=NotificationType(notification_type).value,
    )
    return notification


async def fan_out(
    session: AsyncSession,
    recipient_ids: Iterable[uuid.UUID],
    notification_type: NotificationType,
    *,
    actor_id: Optional[uuid.UUID] = None,
    **fields: Any,
) -> list[Notification]:
    """One notification per distinct recipient, never to the actor."""
    created: list[Notification] = []
    seen: set[uuid.UUID] = set()
    for recipient_id in recipient_ids:
        if recipient_id in seen or recipient_id == actor_id:
            continue
        seen.add(recipient_id)
        created.append(
            await create_notification(
                session, recipient_id, notification_type, actor_id=actor_id, **fields
            )
        )
    return created


async def deliver_in_app(session: AsyncSession, notifications: Sequence[Notification]) -> int:
    """
    Push ``notification.created`` to each recipient whose effective in-app
    setting is enabled. Call after the rows are committed. Returns pushes sent.
    """
    sent = 0
    for notification in notifications:
        setting = await resolve_effective_setting(
            session, notification.user_id, notification.type, notification.community_id
        )
        if not setting.in_app_enabled:
            log.debug(
                "notification.in_app_disabled",
                user_id=str(notification.user_id),
                type=NotificationType(notification.type).value,
            )
            continue
        payload = NotificationResponse.model_validate(notification).model_dump(
            mode="json", by_alias=True
        )
        if await publish_user_event(notification.user_id, "notification.created", payload):
            sent += 1
    return sent


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def _scope_filter(community_id: Optional[uuid.UUID]):
    if community_id is None:
        return UserNotificationSetting.community_id.is_(None)
    return UserNotificationSetting.community_id == community_id


async def _get_setting_row(
    session: AsyncSession,
    user_id: uuid.UUID,
    notification_type: NotificationType,
    community_id: Optional[uuid.UUID],
) -> Optional[UserNotificationSetting]:
    result = await session.execute(
        select(UserNotificationSetting).where(
            UserNotificationSetting.user_id == user_id,
            UserNotificationSetting.notification_type == notification_type,
            _scope_filter(community_id),
        )
    )
    return result.scalar_one_or_none()


async def resolve_effective_setting(
    session: AsyncSession,
    user_id: uuid.UUID,
    notification_type: NotificationType,
    community_id: Optional[uuid.UUID] = None,
) -> EffectiveSetting:
    """
    Effective delivery channels for one (user, type, community).

    A per-community row replaces the global row as a whole (all channels and
    the digest frequency); without either, the type defaults apply.
    """
    row: Optional[UserNotificationSetting] = None
    source = "default"
    if community_id is not None:
        row = await _get_setting_row(session, user_id, notification_type, community_id)
        if row:
            source = "community"
    if row is None:
        row = await _get_setting_row(session, user_id, notification_type, None)
        if row:
            source = "global"

    if row is None:
        return EffectiveSetting(
            notification_type=notification_type,
            community_id=community_id,
            email_enabled=DEFAULT_EMAIL_ENABLED,
            in_app_enabled=DEFAULT_IN_APP_ENABLED,
            push_enabled=DEFAULT_PUSH_ENABLED,
            digest_frequency=None,
            source=source,
        )
    return EffectiveSetting(
        notification_type=notification_type,
        community_id=community_id,
        email_enabled=row.email_enabled,
        in_app_enabled=row.in_app_enabled,
        push_enabled=row.push_enabled,
        digest_frequency=row.digest_frequency,
        source=source,
    )


async def get_notification_settings(
    session: AsyncSession, user_id: uuid.UUID
) -> list[NotificationSettingResponse]:
    """
    One global entry per notification type (saved or synthesized), then the
    saved per-community rows. Synthesized defaults are never persisted.
    """
    result = await session.execute(
        select(UserNotificationSetting).where(UserNotificationSetting.user_id == user_id)
    )
    rows = result.scalars().all()

    global_rows = {row.notification_type: row for row in rows if row.community_id is None}
    community_rows = sorted(
        (row for row in rows if row.community_id is not None),
        key=lambda row: (str(row.community_id), NotificationType(row.notification_type).value),
    )

    settings_out: list[NotificationSettingResponse] = []
    for notification_type in NotificationType:
        row = global_rows.get(notification_type)
        if row is not None:
            settings_out.append(NotificationSettingResponse.model_validate(row))
        else:
            settings_out.append(
                NotificationSettingResponse(
                    user_id=user_id,
                    community_id=None,
                    notification_type=notification_type,
                )
            )
    settings_out.extend(NotificationSettingResponse.model_validate(row) for row in community_rows)
    return settings_out


async def upsert_notification_settings(
    session: AsyncSession,
    user_id: uuid.UUID,
    items: Sequence[NotificationSettingUpdate],
) -> tuple[list[UserNotificationSetting], int]:
    """Upsert each item on (user, community-or-global, type). Returns (rows, skipped)."""
    saved: list[UserNotificationSetting] = []
    skipped = 0
    for item in items:
        try:
            notification_type = NotificationType(item.notification_type)
        except ValueError:
            log.warning(
                "notification_settings.invalid_type",
                user_id=str(user_id),
                notification_type=item.notification_type,
            )
            skipped += 1
            continue

        if item.community_id is not None and not await session.get(Community, item.community_id):
            log.warning(
                "notification_settings.unknown_community",
                user_id=str(user_id),
                community_id=str(item.community_id),
            )
            skipped += 1
            continue

        row = await _get_setting_row(session, user_id, notification_type, item.community_id)
        if row is None:
            row = UserNotificationSetting(
                user_id=user_id,
                community_id=item.community_id,
                notification_type=notification_type,
                email_enabled=DEFAULT_EMAIL_ENABLED if item.email_enabled is None else item.email_enabled,
                in_app_enabled=DEFAULT_IN_APP_ENABLED if item.in_app_enabled is None else item.in_app_enabled,
                push_enabled=DEFAULT_PUSH_ENABLED if item.push_enabled is None else item.push_enabled,
                digest_frequency=item.digest_frequency,
            )
            session.add(row)
        else:
            for field in ("email_enabled", "in_app_enabled", "push_enabled", "digest_frequency"):
                value = getattr(item, field)
                if value is not None:
                    setattr(row, field, value)
        # flush per item so a repeated key in one batch updates the same row
        await session.flush()
        saved.append(row)

    for row in saved:
        await session.refresh(row)
    log.info("notification_settings.saved", user_id=str(user_id), saved=len(saved), skipped=skipped)
    return saved, skipped


# ---------------------------------------------------------------------------
# Feed & read state
# ---------------------------------------------------------------------------

async def list_notifications(
    session: AsyncSession,
    user_id: uuid.UUID,
    page: int = 1,
    limit: int = 10,
    is_read: Optional[bool] = None,
) -> NotificationListResponse:
    """Newest first, with actor and community summaries."""
    conditions = [Notification.user_id == user_id]
    if is_read is not None:
        conditions.append(Notification.is_read == is_read)

    total = (
        await session.execute(select(func.count()).select_from(Notification).where(*conditions))
    ).scalar_one()

    result = await session.execute(
        select(Notification)
        .where(*conditions)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    notifications = result.scalars().all()

    actor_ids = {n.actor_id for n in notifications if n.actor_id}
    community_ids = {n.community_id for n in notifications if n.community_id}
    actors: dict[uuid.UUID, User] = {}
    communities: dict[uuid.UUID, Community] = {}
    if actor_ids:
        result = await session.execute(select(User).where(User.id.in_(actor_ids)))
        actors = {u.id: u for u in result.scalars().all()}
    if community_ids:
        result = await session.execute(select(Community).where(Community.id.in_(community_ids)))
        communities = {c.id: c for c in result.scalars().all()}

    items = []
    for n in notifications:
        actor = actors.get(n.actor_id) if n.actor_id else None
        community = communities.get(n.community_id) if n.community_id else None
        link, text = notification_link_and_text(n, actor, community)
        item = NotificationResponse.model_validate(n)
        item.actor = ActorSummary.model_validate(actor) if actor else None
        item.community = CommunitySummary.model_validate(community) if community else None
        item.link = link
        item.text = text
        items.append(item)

    return NotificationListResponse(
        notifications=items,
        current_page=page,
        total_pages=math.ceil(total / limit),
        total_notifications=total,
    )


async def mark_notifications_read(
    session: AsyncSession, user_id: uuid.UUID, notification_ids: Sequence[str]
) -> int:
    """Flip the caller's unread rows among ``notification_ids``. Returns rows changed."""
    valid_ids: list[uuid.UUID] = []
    for raw in notification_ids:
        try:
            valid_ids.append(uuid.UUID(str(raw)))
        except ValueError:
            continue
    if not valid_ids:
        raise HTTPException(status_code=400, detail="No valid notification IDs provided.")

    result = await session.execute(
        update(Notification)
        .where(
            Notification.id.in_(valid_ids),
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
        .values(is_read=True)
    )
    log.info("notification.marked_read", user_id=str(user_id), count=result.rowcount)
    return result.rowcount


async def mark_all_notifications_read(session: AsyncSession, user_id: uuid.UUID) -> int:
    result = await session.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    log.info("notification.marked_all_read", user_id=str(user_id), count=result.rowcount)
    return result.rowcount


async def count_unread(session: AsyncSession, user_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
    )
    return result.scalar_one()
