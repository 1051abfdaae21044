"""Web Push message encryption (RFC 8291) in ``aes128gcm`` framing (RFC 8188).

Every message is sent as a single record::

    salt (16) | record size (u32 BE) | keyid length (u8) | keyid (65) | ciphertext

where the keyid is the sender's ephemeral P-256 public key and the
ciphertext carries the 16-byte GCM tag.
"""
from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from typing import ClassVar, Tuple

from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF, HKDFExpand

from push_notifier.core.webpush.keys import (
    UNCOMPRESSED_POINT_LENGTH,
    export_public_key,
    generate_private_key,
    load_public_key,
)
from push_notifier.utils.exceptions import InvalidSubscriptionError, PayloadTooLargeError


RECORD_SIZE = 4096
SALT_LENGTH = 16
AUTH_SECRET_LENGTH = 16
IKM_LENGTH = 32
CEK_LENGTH = 16
NONCE_LENGTH = 12
TAG_LENGTH = 16
LAST_RECORD_DELIMITER = b"\x02"

WEBPUSH_INFO = b"WebPush: info\x00"
CEK_INFO = b"Content-Encoding: aes128gcm\x00"
NONCE_INFO = b"Content-Encoding: nonce\x00"

MAX_PLAINTEXT_LENGTH = RECORD_SIZE - TAG_LENGTH - len(LAST_RECORD_DELIMITER)


@dataclass(frozen=True)
class Aes128GcmHeader:
    """The fixed-layout header that precedes the ciphertext."""

    salt: bytes
    record_size: int
    keyid: bytes

    _FIXED: ClassVar[struct.Struct] = struct.Struct("!16sIB")

    def pack(self) -> bytes:
        if len(self.salt) != SALT_LENGTH:
            raise ValueError(f"Salt must be {SALT_LENGTH} bytes")
        if len(self.keyid) > 255:
            raise ValueError("Key id must fit in a single length byte")
        return self._FIXED.pack(self.salt, self.record_size, len(self.keyid)) + self.keyid

    @classmethod
    def unpack(cls, frame: bytes) -> Tuple["Aes128GcmHeader", bytes]:
        """Split ``frame`` into its header and the remaining ciphertext."""

        if len(frame) < cls._FIXED.size:
            raise ValueError("Frame is shorter than the aes128gcm header")
        salt, record_size, keyid_length = cls._FIXED.unpack_from(frame)
        keyid_end = cls._FIXED.size + keyid_length
        if len(frame) < keyid_end:
            raise ValueError("Frame is shorter than its declared key id")
        header = cls(salt=salt, record_size=record_size, keyid=bytes(frame[cls._FIXED.size:keyid_end]))
        return header, bytes(frame[keyid_end:])


def _hkdf_extract(salt: bytes, ikm: bytes) -> bytes:
    mac = hmac.HMAC(salt, hashes.SHA256())
    mac.update(ikm)
    return mac.finalize()


def _derive_ikm(
    shared_secret: bytes, auth_secret: bytes, receiver_public: bytes, sender_public: bytes
) -> bytes:
    # key_info binds the auth secret to both public keys
    info = WEBPUSH_INFO + receiver_public + sender_public
    return HKDF(
        algorithm=hashes.SHA256(), length=IKM_LENGTH, salt=auth_secret, info=info
    ).derive(shared_secret)


def _derive_content_keys(salt: bytes, ikm: bytes) -> Tuple[bytes, bytes]:
    prk = _hkdf_extract(salt, ikm)
    cek = HKDFExpand(algorithm=hashes.SHA256(), length=CEK_LENGTH, info=CEK_INFO).derive(prk)
    nonce = HKDFExpand(algorithm=hashes.SHA256(), length=NONCE_LENGTH, info=NONCE_INFO).derive(prk)
    return cek, nonce


def _import_client_key(client_public_key: bytes) -> ec.EllipticCurvePublicKey:
    try:
        return load_public_key(client_public_key)
    except ValueError as exc:
        raise InvalidSubscriptionError(
            f"Subscription public key is not a valid P-256 point: {exc}",
            {"length": len(client_public_key)},
        ) from exc


def encrypt(
    client_public_key: bytes,
    client_auth: bytes,
    plaintext: str | bytes,
    *,
    salt: bytes | None = None,
    server_private_key: ec.EllipticCurvePrivateKey | None = None,
) -> bytes:
    """Encrypt ``plaintext`` for one subscriber and return the framed body.

    ``salt`` and ``server_private_key`` exist for known-answer tests only;
    leaving them unset draws fresh values, which every real send must do.
    """

    if isinstance(plaintext, str):
        plaintext = plaintext.encode("utf-8")
    if len(client_auth) != AUTH_SECRET_LENGTH:
        raise InvalidSubscriptionError(
            f"Subscription auth secret must be {AUTH_SECRET_LENGTH} bytes",
            {"length": len(client_auth)},
        )
    client_key = _import_client_key(client_public_key)

    padded = plaintext + LAST_RECORD_DELIMITER
    if len(padded) + TAG_LENGTH > RECORD_SIZE:
        raise PayloadTooLargeError(
            f"Payload exceeds the {MAX_PLAINTEXT_LENGTH}-byte single record limit",
            {"length": len(plaintext), "limit": MAX_PLAINTEXT_LENGTH},
        )

    server_key = server_private_key or generate_private_key()
    server_public = export_public_key(server_key)
    salt = salt if salt is not None else os.urandom(SALT_LENGTH)

    shared_secret = server_key.exchange(ec.ECDH(), client_key)
    ikm = _derive_ikm(shared_secret, client_auth, bytes(client_public_key), server_public)
    cek, nonce = _derive_content_keys(salt, ikm)
    ciphertext = AESGCM(cek).encrypt(nonce, padded, None)

    header = Aes128GcmHeader(salt=salt, record_size=RECORD_SIZE, keyid=server_public)
    return header.pack() + ciphertext


def decrypt(
    frame: bytes, client_private_key: ec.EllipticCurvePrivateKey, client_auth: bytes
) -> bytes:
    """Recover the plaintext of a single-record frame on the receiving side.

    Raises ``ValueError`` for malformed frames and
    ``cryptography.exceptions.InvalidTag`` when authentication fails.
    """

    header, ciphertext = Aes128GcmHeader.unpack(frame)
    if len(header.keyid) != UNCOMPRESSED_POINT_LENGTH:
        raise ValueError("Key id must be the sender's 65-byte public key")
    if len(ciphertext) > header.record_size:
        raise ValueError("Multi-record payloads are not supported")

    sender_key = load_public_key(header.keyid)
    shared_secret = client_private_key.exchange(ec.ECDH(), sender_key)
    ikm = _derive_ikm(shared_secret, client_auth, export_public_key(client_private_key), header.keyid)
    cek, nonce = _derive_content_keys(header.salt, ikm)
    padded = AESGCM(cek).decrypt(nonce, ciphertext, None).rstrip(b"\x00")
    if not padded.endswith(LAST_RECORD_DELIMITER):
        raise ValueError("Final record delimiter is missing")
    return padded[: -len(LAST_RECORD_DELIMITER)]
