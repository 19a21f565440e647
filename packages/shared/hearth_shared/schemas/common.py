from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for wire schemas: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    EXPIRED = "expired"
    TRIALING = "trialing"


# Statuses that end a subscription; used by the churn metric
CHURNED_STATUSES: list["SubscriptionStatus"] = [
    SubscriptionStatus.CANCELED,
    SubscriptionStatus.EXPIRED,
]


class PaymentStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"
    ONE_TIME = "one_time"


class UserRole(str, Enum):
    MEMBER = "member"
    ADMIN = "admin"


class CommunityRole(str, Enum):
    OWNER = "owner"
    MODERATOR = "moderator"
    MEMBER = "member"


class NotificationType(str, Enum):
    POST_LIKE = "POST_LIKE"
    POST_COMMENT = "POST_COMMENT"
    COMMENT_REPLY = "COMMENT_REPLY"
    COMMENT_LIKE = "COMMENT_LIKE"
    MENTION_IN_POST = "MENTION_IN_POST"
    MENTION_IN_COMMENT = "MENTION_IN_COMMENT"
    ADMIN_ANNOUNCEMENT = "ADMIN_ANNOUNCEMENT"
    COMMUNITY_INVITE = "COMMUNITY_INVITE"
    NEW_MEMBER_JOINED_COMMUNITY = "NEW_MEMBER_JOINED_COMMUNITY"
    ROLE_CHANGE = "ROLE_CHANGE"
    EVENT_CREATED = "EVENT_CREATED"
    EVENT_UPDATED = "EVENT_UPDATED"
    EVENT_REMINDER = "EVENT_REMINDER"
    EVENT_RSVP_CONFIRMATION = "EVENT_RSVP_CONFIRMATION"
    COURSE_ENROLLMENT = "COURSE_ENROLLMENT"
    NEW_LESSON_PUBLISHED = "NEW_LESSON_PUBLISHED"
    COURSE_COMPLETED = "COURSE_COMPLETED"
    BADGE_EARNED = "BADGE_EARNED"
    ACHIEVEMENT_UNLOCKED = "ACHIEVEMENT_UNLOCKED"
    LEVEL_UP = "LEVEL_UP"
    SUBSCRIPTION_STARTED = "SUBSCRIPTION_STARTED"
    SUBSCRIPTION_ENDING_SOON = "SUBSCRIPTION_ENDING_SOON"
    PAYMENT_SUCCESSFUL = "PAYMENT_SUCCESSFUL"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    NEW_CHAT_MESSAGE = "NEW_CHAT_MESSAGE"
    PASSWORD_RESET_REQUEST = "PASSWORD_RESET_REQUEST"
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    NEW_LOGIN_DETECTED = "NEW_LOGIN_DETECTED"
    SYSTEM_ALERT = "SYSTEM_ALERT"
    FEATURE_UPDATE = "FEATURE_UPDATE"


NOTIFICATION_TYPE_NAMES: dict["NotificationType", str] = {
    NotificationType.POST_LIKE: "Likes on your posts",
    NotificationType.POST_COMMENT: "Comments on your posts",
    NotificationType.COMMENT_REPLY: "Replies to your comments",
    NotificationType.COMMENT_LIKE: "Likes on your comments",
    NotificationType.MENTION_IN_POST: "Mentions in posts",
    NotificationType.MENTION_IN_COMMENT: "Mentions in comments",
    NotificationType.ADMIN_ANNOUNCEMENT: "Admin announcements",
    NotificationType.COMMUNITY_INVITE: "Community invites",
    NotificationType.NEW_MEMBER_JOINED_COMMUNITY: "New member in your community",
    NotificationType.ROLE_CHANGE: "Role changes",
    NotificationType.EVENT_CREATED: "New events in your community",
    NotificationType.EVENT_UPDATED: "Event updates",
    NotificationType.EVENT_REMINDER: "Event reminders",
    NotificationType.EVENT_RSVP_CONFIRMATION: "Event RSVP confirmations",
    NotificationType.COURSE_ENROLLMENT: "New course enrollments",
    NotificationType.NEW_LESSON_PUBLISHED: "New lessons in enrolled courses",
    NotificationType.COURSE_COMPLETED: "Course completions",
    NotificationType.BADGE_EARNED: "Badges earned",
    NotificationType.ACHIEVEMENT_UNLOCKED: "Achievements unlocked",
    NotificationType.LEVEL_UP: "Level ups",
    NotificationType.SUBSCRIPTION_STARTED: "New subscription started",
    NotificationType.SUBSCRIPTION_ENDING_SOON: "Subscription ending soon",
    NotificationType.PAYMENT_SUCCESSFUL: "Successful payments",
    NotificationType.PAYMENT_FAILED: "Failed payments",
    NotificationType.NEW_CHAT_MESSAGE: "New chat messages",
    NotificationType.PASSWORD_RESET_REQUEST: "Password reset requests",
    NotificationType.EMAIL_VERIFICATION: "Email verifications",
    NotificationType.NEW_LOGIN_DETECTED: "New login alerts",
    NotificationType.SYSTEM_ALERT: "System alerts",
    NotificationType.FEATURE_UPDATE: "Feature updates",
}


class ErrorResponse(BaseModel):
    error: str
    details: Optional[object] = None
