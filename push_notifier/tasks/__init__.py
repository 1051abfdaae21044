"""Celery tasks package."""

from push_notifier.tasks import notifications

__all__ = ["notifications"]
