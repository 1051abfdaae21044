"""Shared API dependencies."""
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError
from sqlalchemy.orm import Session

from push_notifier.core.security import InvalidTokenError, decode_token
from push_notifier.db.models.user import User
from push_notifier.db.session import SessionLocal
from push_notifier.schemas import TokenPayload
from push_notifier.services.notification_service import NotificationService
from push_notifier.services.push_delivery import PushDeliveryClient
from push_notifier.utils.exceptions import AuthenticationError

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Session:
    """Yield a database session for request lifetime."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def resolve_user(
    credentials: Optional[HTTPAuthorizationCredentials], db: Session
) -> User:
    """Resolve the bearer token to an active user or raise ``AuthenticationError``."""

    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing bearer token")

    try:
        payload = decode_token(credentials.credentials)
        if payload.get("type") != "access":
            raise InvalidTokenError("Token must be an access token")
        token_data = TokenPayload.model_validate(payload)
    except (InvalidTokenError, ValidationError, ValueError, KeyError) as exc:
        raise AuthenticationError("Could not validate credentials") from exc

    user = db.get(User, uuid.UUID(str(token_data.sub)))
    if user is None or not user.is_active:
        raise AuthenticationError("Could not validate credentials")
    return user


def get_delivery_client() -> PushDeliveryClient:
    return PushDeliveryClient()


def get_notification_service(
    db: Session = Depends(get_db),
    delivery_client: PushDeliveryClient = Depends(get_delivery_client),
) -> NotificationService:
    """Assemble the notification service with request-scoped dependencies."""

    return NotificationService(db, delivery_client=delivery_client)
