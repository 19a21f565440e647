"""Notification and notification-setting schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import UUID4, Field, model_validator

from .common import CamelModel, NotificationType


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class ActorSummary(CamelModel):
    id: UUID4
    name: Optional[str] = None
    username: Optional[str] = None
    image: Optional[str] = None


class CommunitySummary(CamelModel):
    id: UUID4
    name: str
    slug: str


class NotificationResponse(CamelModel):
    id: UUID4
    user_id: UUID4
    type: NotificationType
    actor_id: Optional[UUID4] = None
    community_id: Optional[UUID4] = None
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None
    title: Optional[str] = None
    message: Optional[str] = None
    is_read: bool
    data: Optional[dict[str, Any]] = None
    created_at: datetime
    actor: Optional[ActorSummary] = None
    community: Optional[CommunitySummary] = None
    link: Optional[str] = None
    text: Optional[str] = None


class NotificationListResponse(CamelModel):
    notifications: List[NotificationResponse]
    current_page: int
    total_pages: int
    total_notifications: int


class MarkReadRequest(CamelModel):
    """Either ``markAllAsRead: true`` or a non-empty ``notificationIds`` list."""
    mark_all_as_read: bool = False
    notification_ids: Optional[List[str]] = None


class MarkReadResponse(CamelModel):
    message: str
    count: int


class UnreadCountResponse(CamelModel):
    unread_count: int


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

DEFAULT_EMAIL_ENABLED = True
DEFAULT_IN_APP_ENABLED = True
DEFAULT_PUSH_ENABLED = False


class NotificationSettingResponse(CamelModel):
    """A saved setting row, or a synthesized default (``id`` is None)."""
    id: Optional[UUID4] = None
    user_id: UUID4
    community_id: Optional[UUID4] = None
    notification_type: NotificationType
    email_enabled: bool = DEFAULT_EMAIL_ENABLED
    in_app_enabled: bool = DEFAULT_IN_APP_ENABLED
    push_enabled: bool = DEFAULT_PUSH_ENABLED
    digest_frequency: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class NotificationSettingUpdate(CamelModel):
    """Partial setting; unknown types are skipped by the service, not rejected here."""
    notification_type: Optional[str] = None
    community_id: Optional[UUID4] = None
    email_enabled: Optional[bool] = None
    in_app_enabled: Optional[bool] = None
    push_enabled: Optional[bool] = None
    digest_frequency: Optional[str] = Field(default=None, max_length=32)


class NotificationSettingsUpdateResponse(CamelModel):
    message: str
    updated_settings: List[NotificationSettingResponse]
    skipped: int = 0


class EffectiveSetting(CamelModel):
    notification_type: NotificationType
    community_id: Optional[UUID4] = None
    email_enabled: bool
    in_app_enabled: bool
    push_enabled: bool
    digest_frequency: Optional[str] = None
    source: str  # community | global | default

    @model_validator(mode="after")
    def _check_source(self) -> "EffectiveSetting":
        if self.source not in ("community", "global", "default"):
            raise ValueError(f"Unknown setting source: {self.source}")
        return self
