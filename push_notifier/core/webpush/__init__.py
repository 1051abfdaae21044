"""Web Push payload encryption and VAPID signing primitives."""

from push_notifier.core.webpush.codec import b64url_decode, b64url_encode
from push_notifier.core.webpush.encryption import (
    MAX_PLAINTEXT_LENGTH,
    RECORD_SIZE,
    Aes128GcmHeader,
    decrypt,
    encrypt,
)
from push_notifier.core.webpush.keys import (
    VapidKeys,
    export_public_key,
    generate_vapid_keys,
    load_private_key,
    load_public_key,
)
from push_notifier.core.webpush.vapid import (
    VapidConfig,
    build_vapid_claims,
    sign_vapid_jwt,
    vapid_audience,
    vapid_authorization_header,
)

__all__ = [
    "Aes128GcmHeader",
    "MAX_PLAINTEXT_LENGTH",
    "RECORD_SIZE",
    "VapidKeys",
    "b64url_decode",
    "b64url_encode",
    "build_vapid_claims",
    "decrypt",
    "encrypt",
    "export_public_key",
    "generate_vapid_keys",
    "load_private_key",
    "load_public_key",
    "sign_vapid_jwt",
    "vapid_audience",
    "vapid_authorization_header",
    "VapidConfig",
]
