"""VAPID (RFC 8292) token signing."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict
from urllib.parse import urlsplit

from cryptography.hazmat.primitives.asymmetric import ec
from jose import jwt

from push_notifier.core.webpush.codec import b64url_decode, b64url_encode
from push_notifier.core.webpush.keys import export_public_key, load_private_key, private_key_to_jwk
from push_notifier.utils.exceptions import InvalidSubscriptionError, VapidConfigurationError


ALGORITHM = "ES256"
DEFAULT_TOKEN_TTL_SECONDS = 12 * 60 * 60
MAX_TOKEN_TTL_SECONDS = 24 * 60 * 60
ALLOWED_SUBJECT_SCHEMES = ("mailto:", "https:")
DEFAULT_PORTS = {"http": 80, "https": 443}


def vapid_audience(endpoint: str) -> str:
    """Return the origin (scheme and host, with any non-default port) of a push endpoint."""

    parts = urlsplit(endpoint)
    host = parts.netloc.rpartition("@")[2]
    if parts.scheme not in ("http", "https") or not host:
        raise InvalidSubscriptionError(
            "Push endpoint must be an absolute http(s) URL", {"endpoint": endpoint}
        )
    try:
        port = parts.port
    except ValueError as exc:
        raise InvalidSubscriptionError(
            "Push endpoint has an invalid port", {"endpoint": endpoint}
        ) from exc
    if port is not None and port == DEFAULT_PORTS[parts.scheme]:
        host = host.rpartition(":")[0]
    return f"{parts.scheme}://{host}"


def validate_subject(subject: str) -> str:
    if not subject or not subject.startswith(ALLOWED_SUBJECT_SCHEMES):
        raise VapidConfigurationError(
            "VAPID subject must be a mailto: or https: URI", {"subject": subject}
        )
    return subject


def build_vapid_claims(
    endpoint: str,
    subject: str,
    *,
    ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
    now: float | None = None,
) -> Dict[str, Any]:
    """Build ``aud``/``exp``/``sub`` claims for a delivery to ``endpoint``."""

    if not 0 < ttl_seconds <= MAX_TOKEN_TTL_SECONDS:
        raise VapidConfigurationError(
            "VAPID token lifetime must be between 1 second and 24 hours",
            {"ttl_seconds": ttl_seconds},
        )
    issued_at = int(now if now is not None else time.time())
    return {
        "aud": vapid_audience(endpoint),
        "exp": issued_at + ttl_seconds,
        "sub": validate_subject(subject),
    }


def sign_vapid_jwt(
    claims: Dict[str, Any], private_key: str | Dict[str, Any] | ec.EllipticCurvePrivateKey
) -> str:
    """Return a compact ES256 JWS over ``claims``.

    The signature segment is the raw 64-byte ``r || s`` pair. Claims are not
    validated here; the push service rejects bad tokens with 401/403.
    """

    key = load_private_key(private_key)
    return jwt.encode(dict(claims), private_key_to_jwk(key), algorithm=ALGORITHM)


def vapid_authorization_header(token: str, public_key: str) -> str:
    return f"vapid t={token}, k={public_key}"


@dataclass(frozen=True)
class VapidConfig:
    """Read-only VAPID identity shared by every concurrent send.

    Build it with :meth:`from_keys` so the private key is parsed and checked
    against the public key once, at startup.
    """

    public_key: str
    private_key: ec.EllipticCurvePrivateKey = field(repr=False)
    subject: str

    @classmethod
    def from_keys(
        cls,
        public_key: str | None,
        private_key: str | Dict[str, Any] | ec.EllipticCurvePrivateKey,
        subject: str,
    ) -> "VapidConfig":
        key = load_private_key(private_key)
        derived = export_public_key(key)
        if public_key:
            try:
                matches = b64url_decode(public_key) == derived
            except ValueError:
                matches = False
            if not matches:
                raise VapidConfigurationError("VAPID public key does not match the private key")
        return cls(public_key=b64url_encode(derived), private_key=key, subject=validate_subject(subject))

    def authorization_header(
        self,
        endpoint: str,
        *,
        ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
        now: float | None = None,
    ) -> str:
        claims = build_vapid_claims(endpoint, self.subject, ttl_seconds=ttl_seconds, now=now)
        return vapid_authorization_header(sign_vapid_jwt(claims, self.private_key), self.public_key)
