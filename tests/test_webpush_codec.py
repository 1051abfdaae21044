"""Tests for the base64url codec."""
from __future__ import annotations

import binascii
import os

import pytest

from push_notifier.core.webpush.codec import b64url_decode, b64url_encode


def test_round_trip_for_every_length_up_to_256() -> None:
    for length in range(0, 257):
        data = os.urandom(length)
        encoded = b64url_encode(data)
        assert "=" not in encoded
        assert b64url_decode(encoded) == data


def test_empty_input() -> None:
    assert b64url_encode(b"") == ""
    assert b64url_decode("") == b""


def test_uses_url_safe_alphabet() -> None:
    encoded = b64url_encode(b"\xfb\xff\xbf")
    assert encoded == "-_-_"
    assert b64url_decode(encoded) == b"\xfb\xff\xbf"


def test_accepts_padded_input() -> None:
    assert b64url_decode("YQ==") == b"a"
    assert b64url_decode("YQ") == b"a"
    assert b64url_decode(b"YWI") == b"ab"


@pytest.mark.parametrize("value", ["ab+c", "ab/c", "a b!", "é"])
def test_rejects_characters_outside_the_alphabet(value: str) -> None:
    with pytest.raises(ValueError):
        b64url_decode(value)


def test_rejects_impossible_length() -> None:
    with pytest.raises(binascii.Error):
        b64url_decode("abcde")
