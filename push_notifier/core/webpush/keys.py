"""P-256 key handling for VAPID identities and ECDH subscribers."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from push_notifier.core.webpush.codec import b64url_decode, b64url_encode
from push_notifier.utils.exceptions import VapidConfigurationError


CURVE = ec.SECP256R1()
COORDINATE_LENGTH = 32
UNCOMPRESSED_POINT_LENGTH = 1 + 2 * COORDINATE_LENGTH
UNCOMPRESSED_POINT_PREFIX = 0x04


@dataclass(frozen=True)
class VapidKeys:
    """A freshly generated VAPID identity.

    ``public_key`` is the base64url uncompressed point handed to browsers;
    ``private_key`` is a JWK JSON document that must stay server-side.
    """

    public_key: str
    private_key: str


def generate_private_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(CURVE)


def export_public_key(key: ec.EllipticCurvePrivateKey | ec.EllipticCurvePublicKey) -> bytes:
    """Return the 65-byte ``0x04 || X || Y`` form of a P-256 public key."""

    if isinstance(key, ec.EllipticCurvePrivateKey):
        key = key.public_key()
    return key.public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
    )


def load_public_key(point: bytes) -> ec.EllipticCurvePublicKey:
    """Import an uncompressed point, raising ``ValueError`` when it is malformed."""

    if len(point) != UNCOMPRESSED_POINT_LENGTH:
        raise ValueError(
            f"Public key must be {UNCOMPRESSED_POINT_LENGTH} bytes, got {len(point)}"
        )
    if point[0] != UNCOMPRESSED_POINT_PREFIX:
        raise ValueError("Public key must be an uncompressed point (0x04 prefix)")
    return ec.EllipticCurvePublicKey.from_encoded_point(CURVE, bytes(point))


def private_key_to_jwk(key: ec.EllipticCurvePrivateKey) -> Dict[str, Any]:
    """Export a private key as an EC JWK with padded coordinates."""

    numbers = key.private_numbers()
    public_numbers = numbers.public_numbers
    return {
        "kty": "EC",
        "crv": "P-256",
        "x": b64url_encode(public_numbers.x.to_bytes(COORDINATE_LENGTH, "big")),
        "y": b64url_encode(public_numbers.y.to_bytes(COORDINATE_LENGTH, "big")),
        "d": b64url_encode(numbers.private_value.to_bytes(COORDINATE_LENGTH, "big")),
        "ext": True,
        "key_ops": ["sign"],
    }


def generate_vapid_keys() -> VapidKeys:
    """Generate a new VAPID key pair. Nothing is persisted here."""

    key = generate_private_key()
    return VapidKeys(
        public_key=b64url_encode(export_public_key(key)),
        private_key=json.dumps(private_key_to_jwk(key), separators=(",", ":")),
    )


def _key_from_jwk(jwk: Dict[str, Any]) -> ec.EllipticCurvePrivateKey:
    if jwk.get("kty") != "EC" or jwk.get("crv") != "P-256":
        raise VapidConfigurationError("VAPID private key JWK must be an EC P-256 key")
    if "d" not in jwk:
        raise VapidConfigurationError("VAPID private key JWK has no private component")
    key = ec.derive_private_key(int.from_bytes(b64url_decode(jwk["d"]), "big"), CURVE)
    if "x" in jwk and "y" in jwk:
        expected = b"\x04" + b64url_decode(jwk["x"]).rjust(COORDINATE_LENGTH, b"\x00") + b64url_decode(
            jwk["y"]
        ).rjust(COORDINATE_LENGTH, b"\x00")
        if export_public_key(key) != expected:
            raise VapidConfigurationError("VAPID private key JWK coordinates do not match 'd'")
    return key


def load_private_key(record: str | Dict[str, Any] | ec.EllipticCurvePrivateKey) -> ec.EllipticCurvePrivateKey:
    """Rebuild a signing key from any supported portable record.

    Accepted forms: a JWK (JSON text or dict), a PEM document, a base64url
    raw 32-byte scalar, or base64url DER (PKCS#8 or SEC1).
    """

    if isinstance(record, ec.EllipticCurvePrivateKey):
        return record
    if not record:
        raise VapidConfigurationError("VAPID private key is not configured")
    try:
        if isinstance(record, dict):
            return _key_from_jwk(record)
        text = record.strip()
        if text.startswith("{"):
            return _key_from_jwk(json.loads(text))
        if text.startswith("-----BEGIN"):
            key = serialization.load_pem_private_key(text.encode("ascii"), password=None)
        else:
            raw = b64url_decode(text)
            if len(raw) == COORDINATE_LENGTH:
                return ec.derive_private_key(int.from_bytes(raw, "big"), CURVE)
            key = serialization.load_der_private_key(raw, password=None)
    except VapidConfigurationError:
        raise
    except (ValueError, TypeError, KeyError, AttributeError) as exc:
        raise VapidConfigurationError(f"Unreadable VAPID private key: {exc}") from exc

    if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(key.curve, ec.SECP256R1):
        raise VapidConfigurationError("VAPID private key must be an EC P-256 key")
    return key
