"""Push notification actions, dispatched on the ``action`` query parameter."""
from __future__ import annotations

import secrets
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials
from loguru import logger
from pydantic import ValidationError
from sqlalchemy.orm import Session

from push_notifier.api.deps import bearer_scheme, get_db, get_notification_service, resolve_user
from push_notifier.config import settings
from push_notifier.schemas import (
    PushAttempt,
    PushTestResponse,
    SendPushRequest,
    SendPushResponse,
    SubscribeRequest,
    SuccessResponse,
    UnsubscribeRequest,
    VapidKeyResponse,
)
from push_notifier.services.notification_service import NotificationService
from push_notifier.services.vapid_config import resolve_vapid_config
from push_notifier.utils.exceptions import (
    AuthenticationError,
    InvalidSubscriptionError,
    PayloadTooLargeError,
    VapidConfigurationError,
    handle_authentication_error,
    handle_invalid_subscription_error,
    handle_payload_too_large_error,
    handle_vapid_configuration_error,
)


router = APIRouter(prefix="/push", tags=["push"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _validate(model, payload: Optional[Dict[str, Any]]):
    try:
        return model.model_validate(payload or {})
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False),
        ) from exc


@router.get("", response_model=VapidKeyResponse)
def get_action(action: str = Query(...), db: Session = Depends(get_db)):
    """Public read actions. Only ``vapid-key`` exists; it needs no auth."""

    if action != "vapid-key":
        return _error(status.HTTP_400_BAD_REQUEST, "Unknown action")
    try:
        vapid = resolve_vapid_config(db)
    except VapidConfigurationError as exc:
        raise handle_vapid_configuration_error(exc)
    return VapidKeyResponse(publicKey=vapid.public_key)


@router.post("")
def post_action(
    action: str = Query(...),
    payload: Optional[Dict[str, Any]] = Body(default=None),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    user_agent: Optional[str] = Header(default=None),
    x_internal_key: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    service: NotificationService = Depends(get_notification_service),
):
    """Subscriber and internal write actions."""

    if action == "send-push":
        return _send_push(payload, x_internal_key, service)
    if action not in ("subscribe", "unsubscribe", "test-push"):
        return _error(status.HTTP_400_BAD_REQUEST, "Unknown action")

    try:
        user = resolve_user(credentials, db)
    except AuthenticationError as exc:
        rejection = handle_authentication_error(exc)
        return JSONResponse(
            status_code=rejection.status_code,
            content={"error": "Unauthorized"},
            headers=rejection.headers,
        )

    try:
        if action == "subscribe":
            request = _validate(SubscribeRequest, payload)
            service.subscribe(user.id, request.subscription, user_agent)
            return SuccessResponse()
        if action == "unsubscribe":
            request = _validate(UnsubscribeRequest, payload)
            service.unsubscribe(user.id, request.endpoint)
            return SuccessResponse()
        results = service.send_test(user.id)
        return PushTestResponse(
            subscriptions=len(results),
            results=[PushAttempt(**result) for result in results],
        )
    except InvalidSubscriptionError as exc:
        raise handle_invalid_subscription_error(exc)
    except VapidConfigurationError as exc:
        raise handle_vapid_configuration_error(exc)


def _send_push(
    payload: Optional[Dict[str, Any]],
    internal_key: Optional[str],
    service: NotificationService,
):
    expected = settings.INTERNAL_API_KEY
    if not expected:
        logger.warning("send-push called but INTERNAL_API_KEY is not configured")
        return _error(status.HTTP_403_FORBIDDEN, "Forbidden")
    if not internal_key or not secrets.compare_digest(internal_key, expected):
        return _error(status.HTTP_403_FORBIDDEN, "Forbidden")

    try:
        request = SendPushRequest.model_validate(payload or {})
    except ValidationError:
        logger.error("send-push missing user_id or title")
        return _error(status.HTTP_400_BAD_REQUEST, "user_id and title required")

    try:
        summary = service.send_to_user(
            request.user_id, request.title, request.message, request.url, request.tag
        )
    except PayloadTooLargeError as exc:
        raise handle_payload_too_large_error(exc)
    except VapidConfigurationError as exc:
        raise handle_vapid_configuration_error(exc)

    response = SendPushResponse(
        sent=summary.sent, failed=summary.failed, skipped=summary.skipped, reason=summary.reason
    )
    return response.model_dump(exclude_defaults=True)
