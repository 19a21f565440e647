# SQLModel definitions, imported here so the metadata is complete for create_all.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User, UserSession  # noqa: F401
from .community import Community, CommunityMember  # noqa: F401
from .plan import Plan  # noqa: F401
from .subscription import Subscription  # noqa: F401
from .payment import Payment, StripeEvent  # noqa: F401
from .notification import Notification, UserNotificationSetting  # noqa: F401
from .chat import ChatChannel, ChatChannelMember, ChatMessage  # noqa: F401
