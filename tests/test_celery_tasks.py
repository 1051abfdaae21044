"""Tests for Celery background tasks."""
from __future__ import annotations

import uuid
from unittest.mock import patch

import pytest
from sqlalchemy.orm import sessionmaker

from push_notifier.db.models import PushSubscription
from push_notifier.services.notification_service import NotificationService
from push_notifier.tasks.notifications import send_user_notification


@pytest.fixture()
def task_session_factory(db_session):
    factory = sessionmaker(autocommit=False, autoflush=False, bind=db_session.bind)
    sessions: list = []

    def create_session():
        session = factory()
        sessions.append(session)
        return session

    try:
        yield create_session
    finally:
        for session in sessions:
            session.close()


@pytest.fixture()
def task_service(push_service, vapid_config):
    def build(db):
        return NotificationService(db, delivery_client=push_service.client(), vapid=vapid_config)

    return build


def test_send_user_notification(db_session, task_session_factory, task_service, user, browser_keys, push_service):
    db_session.add(
        PushSubscription(
            user_id=user.id,
            endpoint="https://fcm.googleapis.com/fcm/send/celery",
            **browser_keys.subscription_info("unused")["keys"],
        )
    )
    db_session.commit()

    with patch("push_notifier.tasks.notifications.SessionLocal", side_effect=task_session_factory), patch(
        "push_notifier.tasks.notifications.NotificationService", side_effect=task_service
    ):
        result = send_user_notification.run(str(user.id), "Checklist pendente", tag="checklist-pending")

    assert result == {"sent": 1, "failed": 0, "removed": 0, "skipped": False}
    assert len(push_service.requests) == 1


def test_send_user_notification_prunes_gone_devices(
    db_session, task_session_factory, task_service, user, browser_keys, push_service
):
    db_session.add(
        PushSubscription(
            user_id=user.id,
            endpoint="https://fcm.googleapis.com/fcm/send/expired",
            **browser_keys.subscription_info("unused")["keys"],
        )
    )
    db_session.commit()
    push_service.statuses.append(404)

    with patch("push_notifier.tasks.notifications.SessionLocal", side_effect=task_session_factory), patch(
        "push_notifier.tasks.notifications.NotificationService", side_effect=task_service
    ):
        result = send_user_notification.run(str(user.id), "Agenda", tag="agenda")

    assert result == {"sent": 0, "failed": 1, "removed": 1, "skipped": False}
    db_session.expire_all()
    assert db_session.query(PushSubscription).count() == 0


def test_send_user_notification_for_unknown_user(task_session_factory, task_service, push_service):
    with patch("push_notifier.tasks.notifications.SessionLocal", side_effect=task_session_factory), patch(
        "push_notifier.tasks.notifications.NotificationService", side_effect=task_service
    ):
        result = send_user_notification.run(str(uuid.uuid4()), "Oi")

    assert result == {"sent": 0, "failed": 0, "removed": 0, "skipped": False}
    assert push_service.requests == []
