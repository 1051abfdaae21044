"""Pydantic models for the push notification actions."""
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SubscriptionKeys(BaseModel):
    """Client key material from ``PushSubscription.toJSON()``."""

    p256dh: str = Field(..., min_length=1, max_length=255)
    auth: str = Field(..., min_length=1, max_length=64)


class SubscriptionInfo(BaseModel):
    """A browser push subscription."""

    endpoint: str = Field(..., min_length=1)
    keys: SubscriptionKeys


class SubscribeRequest(BaseModel):
    subscription: SubscriptionInfo


class UnsubscribeRequest(BaseModel):
    endpoint: str = Field(..., min_length=1)


class SendPushRequest(BaseModel):
    """Internal request to notify every device of one user."""

    user_id: uuid.UUID
    title: str = Field(..., min_length=1)
    message: str = ""
    url: str = "/"
    tag: Optional[str] = None


class NotificationPayload(BaseModel):
    """JSON document the service worker receives after decryption."""

    model_config = ConfigDict(extra="allow")

    title: str
    body: str = ""
    url: str = "/"
    tag: str = "notification"
    icon: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)


class VapidKeyResponse(BaseModel):
    publicKey: str


class SuccessResponse(BaseModel):
    success: bool = True


class SendPushResponse(BaseModel):
    sent: int
    failed: int
    skipped: bool = False
    reason: Optional[str] = None


class PushAttempt(BaseModel):
    """Outcome of one delivery in a test push."""

    endpoint: str
    ok: bool
    status: int
    error: Optional[str] = None


class PushTestResponse(BaseModel):
    subscriptions: int
    results: List[PushAttempt]
