"""Custom exception classes and error handling utilities."""
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from loguru import logger


class PushNotifierException(Exception):
    """Base exception for the application."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class VapidConfigurationError(PushNotifierException):
    """Missing or unusable VAPID key material."""
    pass


class InvalidSubscriptionError(PushNotifierException):
    """Subscription keys or endpoint cannot be used; the subscription is corrupt."""
    pass


class PayloadTooLargeError(PushNotifierException):
    """Notification payload does not fit in a single aes128gcm record."""
    pass


class AuthenticationError(PushNotifierException):
    """Authentication and authorization errors."""
    pass


def handle_vapid_configuration_error(error: VapidConfigurationError) -> HTTPException:
    """Handle VAPID configuration errors."""
    logger.error(f"VAPID configuration error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Push notifications are not configured."
    )


def handle_invalid_subscription_error(error: InvalidSubscriptionError) -> HTTPException:
    """Handle malformed subscription errors."""
    logger.warning(f"Invalid subscription: {error.message}")
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={
            "message": error.message,
            "details": error.details
        }
    )


def handle_payload_too_large_error(error: PayloadTooLargeError) -> HTTPException:
    """Handle oversized notification payloads."""
    logger.warning(f"Payload too large: {error.message}")
    return HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        detail=error.message
    )


def handle_authentication_error(error: AuthenticationError) -> HTTPException:
    """Handle authentication errors."""
    logger.warning(f"Authentication error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=error.message,
        headers={"WWW-Authenticate": "Bearer"},
    )
