"""Utility helpers package."""

from push_notifier.utils.exceptions import (
    AuthenticationError,
    InvalidSubscriptionError,
    PayloadTooLargeError,
    PushNotifierException,
    VapidConfigurationError,
)

__all__ = [
    "AuthenticationError",
    "InvalidSubscriptionError",
    "PayloadTooLargeError",
    "PushNotifierException",
    "VapidConfigurationError",
]
