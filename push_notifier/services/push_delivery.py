"""HTTP delivery of encrypted messages to browser push services."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

import httpx
from loguru import logger

from push_notifier.config import settings
from push_notifier.core.webpush import VapidConfig, b64url_decode, encrypt
from push_notifier.utils.exceptions import InvalidSubscriptionError


GONE_STATUSES = frozenset({404, 410})
UNAUTHORIZED_STATUSES = frozenset({401, 403})


def shorten_endpoint(endpoint: str, limit: int = 60) -> str:
    """Trim push endpoints for log lines; the tail is a per-device token."""

    return endpoint if len(endpoint) <= limit else f"{endpoint[:limit]}..."


@dataclass(frozen=True)
class Subscription:
    """The (endpoint, p256dh, auth) triple a browser hands over on subscribe."""

    endpoint: str
    p256dh: str
    auth: str

    @classmethod
    def from_info(cls, info: Mapping[str, Any]) -> "Subscription":
        """Accept both the nested ``toJSON()`` shape and a flat row."""

        keys = info.get("keys") or info
        try:
            return cls(endpoint=info["endpoint"], p256dh=keys["p256dh"], auth=keys["auth"])
        except KeyError as exc:
            raise InvalidSubscriptionError(f"Subscription is missing {exc.args[0]!r}") from exc

    def decoded_keys(self) -> Tuple[bytes, bytes]:
        try:
            return b64url_decode(self.p256dh), b64url_decode(self.auth)
        except ValueError as exc:
            raise InvalidSubscriptionError(
                "Subscription keys are not valid base64url",
                {"endpoint": shorten_endpoint(self.endpoint)},
            ) from exc


@dataclass(frozen=True)
class PushResult:
    """Outcome of a single POST to a push service.

    ``ok`` means the relay accepted the message, not that a device showed it.
    ``status`` is 0 when no HTTP response was received.
    """

    ok: bool
    status: int
    endpoint: str
    reason: Optional[str] = None

    @property
    def gone(self) -> bool:
        return self.status in GONE_STATUSES

    @property
    def unauthorized(self) -> bool:
        return self.status in UNAUTHORIZED_STATUSES

    @property
    def transient(self) -> bool:
        return not self.ok and (self.status == 0 or self.status == 429 or self.status >= 500)


def serialize_payload(payload: str | bytes | Mapping[str, Any]) -> bytes:
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return json.dumps(dict(payload), separators=(",", ":"), ensure_ascii=False).encode("utf-8")


class PushDeliveryClient:
    """Encrypt, sign and POST one message per call. Never retries."""

    def __init__(
        self,
        *,
        timeout: float | None = None,
        ttl: int | None = None,
        urgency: str | None = None,
        token_ttl_seconds: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else settings.PUSH_REQUEST_TIMEOUT_SECONDS
        self.ttl = ttl if ttl is not None else settings.PUSH_TTL_SECONDS
        self.urgency = urgency or settings.PUSH_URGENCY
        self.token_ttl_seconds = token_ttl_seconds or settings.VAPID_TOKEN_TTL_SECONDS
        self._transport = transport

    def build_request(
        self,
        subscription: Subscription,
        payload: str | bytes | Mapping[str, Any],
        vapid: VapidConfig,
    ) -> Tuple[Dict[str, str], bytes]:
        """Return the headers and encrypted body for ``subscription``.

        Raises :class:`InvalidSubscriptionError` for corrupt subscriptions and
        :class:`PayloadTooLargeError` for oversized payloads.
        """

        client_public_key, client_auth = subscription.decoded_keys()
        body = encrypt(client_public_key, client_auth, serialize_payload(payload))
        headers = {
            "Content-Type": "application/octet-stream",
            "Content-Encoding": "aes128gcm",
            "TTL": str(self.ttl),
            "Urgency": self.urgency,
            "Authorization": vapid.authorization_header(
                subscription.endpoint, ttl_seconds=self.token_ttl_seconds
            ),
        }
        return headers, body

    def send(
        self,
        subscription: Subscription,
        payload: str | bytes | Mapping[str, Any],
        vapid: VapidConfig,
    ) -> PushResult:
        headers, body = self.build_request(subscription, payload, vapid)
        endpoint = shorten_endpoint(subscription.endpoint)

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(subscription.endpoint, content=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Push delivery failed", endpoint=endpoint, error=str(exc))
            return PushResult(ok=False, status=0, endpoint=subscription.endpoint, reason=str(exc))

        result = PushResult(
            ok=response.is_success,
            status=response.status_code,
            endpoint=subscription.endpoint,
            reason=None if response.is_success else response.text[:200],
        )
        if result.ok:
            logger.info("Push delivered", endpoint=endpoint, status=result.status)
        elif result.unauthorized:
            # Clock skew or a key mismatch on our side; operators must look
            logger.error(
                "Push service rejected VAPID credentials",
                endpoint=endpoint,
                status=result.status,
                body=result.reason,
            )
        elif result.gone:
            logger.info("Push subscription is gone", endpoint=endpoint, status=result.status)
        else:
            logger.warning(
                "Push service returned error", endpoint=endpoint, status=result.status, body=result.reason
            )
        return result


def send_push(
    subscription: Subscription | Mapping[str, Any],
    payload_json: str | bytes | Mapping[str, Any],
    vapid_public_key: str,
    vapid_private_key: str,
    vapid_subject: str,
    *,
    client: PushDeliveryClient | None = None,
) -> Dict[str, Any]:
    """Deliver one message and report ``{"ok": bool, "status": int}``."""

    if not isinstance(subscription, Subscription):
        subscription = Subscription.from_info(subscription)
    vapid = VapidConfig.from_keys(vapid_public_key, vapid_private_key, vapid_subject)
    result = (client or PushDeliveryClient()).send(subscription, payload_json, vapid)
    return {"ok": result.ok, "status": result.status}
