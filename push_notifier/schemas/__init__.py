"""Pydantic schemas package."""

from push_notifier.schemas.auth import TokenPayload
from push_notifier.schemas.push import (
    NotificationPayload,
    PushAttempt,
    SendPushRequest,
    SendPushResponse,
    SubscribeRequest,
    SubscriptionInfo,
    SubscriptionKeys,
    SuccessResponse,
    PushTestResponse,
    UnsubscribeRequest,
    VapidKeyResponse,
)

__all__ = [
    "TokenPayload",
    "NotificationPayload",
    "PushAttempt",
    "SendPushRequest",
    "SendPushResponse",
    "SubscribeRequest",
    "SubscriptionInfo",
    "SubscriptionKeys",
    "SuccessResponse",
    "PushTestResponse",
    "UnsubscribeRequest",
    "VapidKeyResponse",
]
