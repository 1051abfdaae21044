"""Celery tasks for push notification fan-out."""
from __future__ import annotations

import uuid

from loguru import logger

from push_notifier.celery_app import celery_app
from push_notifier.db.session import SessionLocal
from push_notifier.services.notification_service import NotificationService


@celery_app.task(name="push_notifier.tasks.notifications.send_user_notification")
def send_user_notification(
    user_id: str,
    title: str,
    message: str = "",
    url: str = "/",
    tag: str | None = None,
) -> dict[str, int | bool]:
    """Deliver a notification to every device registered by ``user_id``."""

    db = SessionLocal()
    try:
        summary = NotificationService(db).send_to_user(
            uuid.UUID(str(user_id)), title, message, url, tag
        )
        logger.info(
            "Notification task finished",
            user_id=str(user_id),
            sent=summary.sent,
            failed=summary.failed,
            skipped=summary.skipped,
        )
        return {
            "sent": summary.sent,
            "failed": summary.failed,
            "removed": summary.removed,
            "skipped": summary.skipped,
        }
    finally:
        db.close()
