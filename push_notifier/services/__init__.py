"""Service layer package."""

from push_notifier.services.notification_service import DeliverySummary, NotificationService
from push_notifier.services.push_delivery import PushDeliveryClient, PushResult, Subscription, send_push
from push_notifier.services.vapid_config import resolve_vapid_config

__all__ = [
    "DeliverySummary",
    "NotificationService",
    "PushDeliveryClient",
    "PushResult",
    "Subscription",
    "resolve_vapid_config",
    "send_push",
]
