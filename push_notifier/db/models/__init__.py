"""Database models package."""
from push_notifier.db.models.user import User
from push_notifier.db.models.push_subscription import PushSubscription
from push_notifier.db.models.push_config import PushConfig
from push_notifier.db.models.notification_preference import NotificationPreference

__all__ = [
    "User",
    "PushSubscription",
    "PushConfig",
    "NotificationPreference",
]
