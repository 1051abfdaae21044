"""Service for handling Web Push subscriptions and fan-out."""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session
from tenacity import Retrying, retry_if_result, stop_after_attempt, wait_exponential

from push_notifier.config import settings
from push_notifier.core.webpush import VapidConfig, load_public_key, vapid_audience
from push_notifier.core.webpush.encryption import AUTH_SECRET_LENGTH, MAX_PLAINTEXT_LENGTH
from push_notifier.db.models.notification_preference import NotificationPreference
from push_notifier.db.models.push_subscription import PushSubscription
from push_notifier.schemas.push import NotificationPayload, SubscriptionInfo
from push_notifier.services.push_delivery import (
    PushDeliveryClient,
    PushResult,
    Subscription,
    shorten_endpoint,
)
from push_notifier.services.vapid_config import resolve_vapid_config
from push_notifier.utils.exceptions import (
    InvalidSubscriptionError,
    PayloadTooLargeError,
    PushNotifierException,
)


DEFAULT_CATEGORY = "sistema"
CATEGORY_TAGS: Dict[str, frozenset[str]] = {
    "estoque": frozenset({"estoque", "zero-stock", "low-stock", "inv-due"}),
    "financeiro": frozenset({"financeiro", "bills-due", "bills-overdue", "neg-balance"}),
    "checklist": frozenset({"checklist", "checklist-pending"}),
    "caixa": frozenset({"caixa", "cash-closing"}),
    "agenda": frozenset({"agenda"}),
    "chat": frozenset({"chat"}),
}
TEST_NOTIFICATION = {
    "title": "🔔 Teste Push",
    "body": "Notificação de teste do Garden Gestão!",
    "url": "/",
    "tag": "sistema",
}


def resolve_category(tag: Optional[str]) -> str:
    """Map a notification tag onto the preference category it belongs to."""

    if not tag:
        return DEFAULT_CATEGORY
    if tag.startswith("chat-"):
        return "chat"
    for category, tags in CATEGORY_TAGS.items():
        if tag in tags:
            return category
    return DEFAULT_CATEGORY


@dataclass
class DeliverySummary:
    """Counters for one fan-out to a user's devices."""

    sent: int = 0
    failed: int = 0
    removed: int = 0
    skipped: bool = False
    reason: Optional[str] = None


class NotificationService:
    def __init__(
        self,
        db: Session,
        *,
        delivery_client: PushDeliveryClient | None = None,
        vapid: VapidConfig | None = None,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
    ):
        self.db = db
        self.delivery_client = delivery_client or PushDeliveryClient()
        self._vapid = vapid
        self.max_attempts = max_attempts or settings.PUSH_MAX_RETRIES
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.PUSH_RETRY_BACKOFF_SECONDS
        )

    @property
    def vapid(self) -> VapidConfig:
        if self._vapid is None:
            self._vapid = resolve_vapid_config(self.db)
        return self._vapid

    def subscribe(
        self,
        user_id: uuid.UUID,
        subscription_info: SubscriptionInfo | Mapping[str, Any],
        user_agent: str | None = None,
    ) -> PushSubscription:
        """Register or refresh a push subscription for ``user_id``."""

        if isinstance(subscription_info, SubscriptionInfo):
            subscription_info = subscription_info.model_dump()
        subscription = Subscription.from_info(subscription_info)
        self._validate(subscription)

        stmt = select(PushSubscription).where(
            PushSubscription.user_id == user_id,
            PushSubscription.endpoint == subscription.endpoint,
        )
        existing = self.db.scalars(stmt).first()
        if existing:
            existing.p256dh = subscription.p256dh
            existing.auth = subscription.auth
            existing.user_agent = user_agent
            record = existing
        else:
            record = PushSubscription(
                user_id=user_id,
                endpoint=subscription.endpoint,
                p256dh=subscription.p256dh,
                auth=subscription.auth,
                user_agent=user_agent,
            )
            self.db.add(record)

        self.db.commit()
        logger.info(
            "Push subscription saved",
            user_id=str(user_id),
            endpoint=shorten_endpoint(subscription.endpoint),
        )
        return record

    def unsubscribe(self, user_id: uuid.UUID, endpoint: str) -> bool:
        """Remove the subscription for ``endpoint``; returns whether one existed."""

        stmt = select(PushSubscription).where(
            PushSubscription.user_id == user_id,
            PushSubscription.endpoint == endpoint,
        )
        existing = self.db.scalars(stmt).first()
        if existing is None:
            return False
        self.db.delete(existing)
        self.db.commit()
        return True

    def list_subscriptions(self, user_id: uuid.UUID) -> List[PushSubscription]:
        stmt = select(PushSubscription).where(PushSubscription.user_id == user_id)
        return list(self.db.scalars(stmt).all())

    def is_category_enabled(self, user_id: uuid.UUID, category: str) -> bool:
        stmt = select(NotificationPreference.enabled).where(
            NotificationPreference.user_id == user_id,
            NotificationPreference.category == category,
        )
        enabled = self.db.scalars(stmt).first()
        return enabled is None or bool(enabled)

    def deliver(
        self, record: PushSubscription, payload: str, vapid: VapidConfig | None = None
    ) -> PushResult:
        """Send to one stored subscription, retrying transient failures.

        Each attempt encrypts again with fresh ephemeral keys.
        """

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=8),
            retry=retry_if_result(lambda result: result.transient),
            before_sleep=self._log_retry,
            retry_error_callback=lambda state: state.outcome.result(),
        )
        subscription = Subscription(endpoint=record.endpoint, p256dh=record.p256dh, auth=record.auth)
        return retrying(self.delivery_client.send, subscription, payload, vapid or self.vapid)

    def send_to_user(
        self,
        user_id: uuid.UUID,
        title: str,
        message: str = "",
        url: str = "/",
        tag: str | None = None,
    ) -> DeliverySummary:
        """Notify every device of ``user_id`` and prune dead subscriptions."""

        category = resolve_category(tag)
        if not self.is_category_enabled(user_id, category):
            logger.info("Push category disabled, skipping", user_id=str(user_id), category=category)
            return DeliverySummary(skipped=True, reason="category_disabled")

        payload = NotificationPayload(
            title=title, body=message or "", url=url or "/", tag=tag or "notification"
        ).to_json()
        payload_length = len(payload.encode("utf-8"))
        if payload_length > MAX_PLAINTEXT_LENGTH:
            raise PayloadTooLargeError(
                f"Payload exceeds the {MAX_PLAINTEXT_LENGTH}-byte single record limit",
                {"length": payload_length, "limit": MAX_PLAINTEXT_LENGTH},
            )
        vapid = self.vapid
        subscriptions = self.list_subscriptions(user_id)
        logger.info("Sending push", user_id=str(user_id), subscriptions=len(subscriptions))

        summary = DeliverySummary()
        for record in subscriptions:
            try:
                result = self.deliver(record, payload, vapid)
            except InvalidSubscriptionError as exc:
                logger.warning(
                    "Removing corrupt push subscription",
                    subscription_id=str(record.id),
                    error=exc.message,
                )
                self.db.delete(record)
                summary.failed += 1
                summary.removed += 1
                continue

            if result.ok:
                summary.sent += 1
                continue
            summary.failed += 1
            if result.gone:
                logger.info("Removing stale push subscription", subscription_id=str(record.id))
                self.db.delete(record)
                summary.removed += 1

        self.db.commit()
        logger.info(
            "Push fan-out finished",
            user_id=str(user_id),
            sent=summary.sent,
            failed=summary.failed,
            removed=summary.removed,
        )
        return summary

    def send_test(self, user_id: uuid.UUID) -> List[Dict[str, Any]]:
        """Send the fixed test notification once to each device, without retries."""

        vapid = self.vapid
        payload = NotificationPayload(**TEST_NOTIFICATION).to_json()
        results: List[Dict[str, Any]] = []
        for record in self.list_subscriptions(user_id):
            subscription = Subscription(endpoint=record.endpoint, p256dh=record.p256dh, auth=record.auth)
            try:
                result = self.delivery_client.send(subscription, payload, vapid)
            except PushNotifierException as exc:
                results.append(
                    {"endpoint": record.endpoint[:80], "ok": False, "status": 0, "error": exc.message}
                )
                continue
            results.append(
                {"endpoint": record.endpoint[:80], "ok": result.ok, "status": result.status}
            )
            if result.gone:
                self.db.delete(record)
        self.db.commit()
        return results

    @staticmethod
    def _validate(subscription: Subscription) -> None:
        vapid_audience(subscription.endpoint)
        client_public_key, client_auth = subscription.decoded_keys()
        try:
            load_public_key(client_public_key)
        except ValueError as exc:
            raise InvalidSubscriptionError(f"Invalid p256dh key: {exc}") from exc
        if len(client_auth) != AUTH_SECRET_LENGTH:
            raise InvalidSubscriptionError(
                f"Auth secret must be {AUTH_SECRET_LENGTH} bytes", {"length": len(client_auth)}
            )

    @staticmethod
    def _log_retry(retry_state) -> None:
        result = retry_state.outcome.result()
        logger.warning(
            "Retrying push delivery",
            attempt=retry_state.attempt_number,
            status=result.status,
            endpoint=shorten_endpoint(result.endpoint),
        )
