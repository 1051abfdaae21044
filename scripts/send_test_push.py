"""CLI script to send one notification to a subscription card.

card.json shape::

    {
      "subscription": {"endpoint": "...", "keys": {"p256dh": "...", "auth": "..."}},
      "vapid": {"subject": "mailto:you@example.com", "public_key": "...", "private_key": "..."}
    }

Without a ``vapid`` section the keys from the environment are used.
"""
from __future__ import annotations

import argparse
import json

from push_notifier.config import settings
from push_notifier.core.webpush import VapidConfig
from push_notifier.schemas import NotificationPayload
from push_notifier.services.push_delivery import PushDeliveryClient, Subscription


def main() -> None:
    parser = argparse.ArgumentParser(description="Send a Web Push notification")
    parser.add_argument("--card", required=True, help="Path to the subscription card JSON")
    parser.add_argument("--title", default="Garden Gestão")
    parser.add_argument("--body", default="Notificação de teste")
    parser.add_argument("--url", default="/")
    parser.add_argument("--tag", default="sistema")
    args = parser.parse_args()

    with open(args.card, "r", encoding="utf-8") as handle:
        card = json.load(handle)

    vapid_section = card.get("vapid") or {}
    vapid = VapidConfig.from_keys(
        vapid_section.get("public_key") or settings.VAPID_PUBLIC_KEY,
        vapid_section.get("private_key") or settings.VAPID_PRIVATE_KEY,
        vapid_section.get("subject") or settings.VAPID_SUBJECT,
    )
    payload = NotificationPayload(title=args.title, body=args.body, url=args.url, tag=args.tag)

    result = PushDeliveryClient().send(
        Subscription.from_info(card["subscription"]), payload.to_json(), vapid
    )
    print(f"ok={result.ok} status={result.status}")
    if result.reason:
        print(result.reason)


if __name__ == "__main__":
    main()
