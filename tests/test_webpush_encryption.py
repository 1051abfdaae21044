"""Tests for aes128gcm message encryption."""
from __future__ import annotations

import http_ece
import pytest
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.asymmetric import ec

from push_notifier.core.webpush import Aes128GcmHeader, MAX_PLAINTEXT_LENGTH, RECORD_SIZE, decrypt, encrypt
from push_notifier.core.webpush.codec import b64url_decode, b64url_encode
from push_notifier.core.webpush.keys import load_public_key
from push_notifier.utils.exceptions import InvalidSubscriptionError, PayloadTooLargeError


PAYLOAD = b'{"title":"Estoque zerado","body":"Tomate acabou","url":"/estoque","tag":"zero-stock"}'

# RFC 8291, Appendix A
RFC_PLAINTEXT = b"When I grow up, I want to be a watermelon"
RFC_AS_PRIVATE = "yfWPiYE-n46HLnH0KqZOF1fJJU3MYrct3AELtAQ-oRw"
RFC_AS_PUBLIC = "BP4z9KsN6nGRTbVYI_c7VJSPQTBtkgcy27mlmlMoZIIgDll6e3vCYLocInmYWAmS6TlzAC8wEqKK6PBru3jl7A8"
RFC_UA_PRIVATE = "q1dXpw3UpT5VOmu_cf_v6ih07Aems3njxI-JWgLcM94"
RFC_UA_PUBLIC = "BCVxsr7N_eNgVRqvHtD0zTZsEc6-VV-JvLexhqUzORcxaOzi6-AYWXvTBHm4bjyPjs7Vd8pZGH6SRpkNtoIAiw4"
RFC_SALT = "DGv6ra1nlYgDCS1FRnbzlw"
RFC_AUTH = "BTBZMqHH6r4Tts7J_aSIgg"
RFC_BODY = (
    "DGv6ra1nlYgDCS1FRnbzlwAAEABBBP4z9KsN6nGRTbVYI_c7VJSPQTBtkgcy27mlmlMoZIIgDll6e3vCYLocInmYWAmS6"
    "TlzAC8wEqKK6PBru3jl7A_yl95bQpu6cVPTpK4Mqgkf1CXztLVBSt2Ks3oZwbuwXPXLWyouBWLVWGNWQexSgSxsj_Qulcy4a-fN"
)


def _scalar_key(value: str) -> ec.EllipticCurvePrivateKey:
    return ec.derive_private_key(int.from_bytes(b64url_decode(value), "big"), ec.SECP256R1())


def test_receiver_recovers_plaintext(browser_keys, reference_decrypt) -> None:
    body = encrypt(browser_keys.public_bytes, browser_keys.auth, PAYLOAD)

    assert reference_decrypt(body, browser_keys.private_key, browser_keys.auth) == PAYLOAD


def test_frame_layout(browser_keys) -> None:
    body = encrypt(browser_keys.public_bytes, browser_keys.auth, PAYLOAD)

    assert body[16:20] == RECORD_SIZE.to_bytes(4, "big")
    assert body[20] == 65
    load_public_key(body[21:86])
    # delimiter byte plus the GCM tag
    assert len(body) == 86 + len(PAYLOAD) + 1 + 16


def test_each_send_uses_fresh_salt_and_key(browser_keys) -> None:
    first = encrypt(browser_keys.public_bytes, browser_keys.auth, PAYLOAD)
    second = encrypt(browser_keys.public_bytes, browser_keys.auth, PAYLOAD)

    assert len(first) == len(second)
    assert first[:16] != second[:16]
    assert first[21:86] != second[21:86]
    assert first != second


def test_rfc8291_known_answer() -> None:
    body = encrypt(
        b64url_decode(RFC_UA_PUBLIC),
        b64url_decode(RFC_AUTH),
        RFC_PLAINTEXT,
        salt=b64url_decode(RFC_SALT),
        server_private_key=_scalar_key(RFC_AS_PRIVATE),
    )

    assert b64url_encode(body) == RFC_BODY
    header, _ = Aes128GcmHeader.unpack(body)
    assert b64url_encode(header.keyid) == RFC_AS_PUBLIC


def test_decrypt_reads_rfc8291_message() -> None:
    plaintext = decrypt(b64url_decode(RFC_BODY), _scalar_key(RFC_UA_PRIVATE), b64url_decode(RFC_AUTH))

    assert plaintext == RFC_PLAINTEXT


def test_http_ece_can_decrypt(browser_keys) -> None:
    body = encrypt(browser_keys.public_bytes, browser_keys.auth, PAYLOAD)

    plaintext = http_ece.decrypt(
        body,
        private_key=browser_keys.private_key,
        auth_secret=browser_keys.auth,
        version="aes128gcm",
    )
    assert plaintext == PAYLOAD


def test_decrypt_rejects_wrong_auth_secret(browser_keys) -> None:
    body = encrypt(browser_keys.public_bytes, browser_keys.auth, PAYLOAD)

    with pytest.raises(InvalidTag):
        decrypt(body, browser_keys.private_key, bytes(16))


def test_text_payload_is_utf8_encoded(browser_keys) -> None:
    body = encrypt(browser_keys.public_bytes, browser_keys.auth, "Notificação")

    assert decrypt(body, browser_keys.private_key, browser_keys.auth) == "Notificação".encode("utf-8")


def test_rejects_non_uncompressed_point(browser_keys) -> None:
    with pytest.raises(InvalidSubscriptionError):
        encrypt(browser_keys.public_bytes[1:], browser_keys.auth, PAYLOAD)


def test_rejects_point_off_curve(browser_keys) -> None:
    with pytest.raises(InvalidSubscriptionError):
        encrypt(b"\x04" + b"\x01" * 64, browser_keys.auth, PAYLOAD)


@pytest.mark.parametrize("length", [0, 12, 32])
def test_rejects_bad_auth_length(browser_keys, length: int) -> None:
    with pytest.raises(InvalidSubscriptionError):
        encrypt(browser_keys.public_bytes, b"a" * length, PAYLOAD)


def test_largest_single_record_payload(browser_keys) -> None:
    body = encrypt(browser_keys.public_bytes, browser_keys.auth, b"x" * MAX_PLAINTEXT_LENGTH)

    assert len(body) - 86 == RECORD_SIZE
    assert decrypt(body, browser_keys.private_key, browser_keys.auth) == b"x" * MAX_PLAINTEXT_LENGTH


def test_rejects_payload_over_one_record(browser_keys) -> None:
    with pytest.raises(PayloadTooLargeError):
        encrypt(browser_keys.public_bytes, browser_keys.auth, b"x" * (MAX_PLAINTEXT_LENGTH + 1))
