"""CLI script to generate a VAPID key pair for the .env file."""
from __future__ import annotations

import argparse

from push_notifier.core.webpush import generate_vapid_keys


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Generate a VAPID key pair for Web Push",
    )
    parser.add_argument(
        "--subject",
        default="mailto:admin@garden-gestao.com",
        help="Contact URI (mailto: or https:) sent with every VAPID token",
    )
    args = parser.parse_args()

    keys = generate_vapid_keys()
    print("# Rotating these keys invalidates every existing browser subscription.")
    print(f"VAPID_PUBLIC_KEY={keys.public_key}")
    print(f"VAPID_PRIVATE_KEY='{keys.private_key}'")
    print(f"VAPID_SUBJECT={args.subject}")


if __name__ == "__main__":
    main()
