"""Base64url helpers used by every Web Push wire field."""
from __future__ import annotations

import base64
import binascii
import re

_B64URL_PATTERN = re.compile(rb"[A-Za-z0-9_-]*={0,2}")


def b64url_encode(data: bytes) -> str:
    """Encode ``data`` with the url-safe alphabet and strip ``=`` padding."""

    return base64.urlsafe_b64encode(bytes(data)).rstrip(b"=").decode("ascii")


def b64url_decode(value: str | bytes) -> bytes:
    """Decode padded or unpadded base64url input.

    Characters outside the url-safe alphabet raise ``binascii.Error``
    (a ``ValueError`` subclass).
    """

    if isinstance(value, str):
        value = value.encode("ascii")
    value = value.strip()
    if not _B64URL_PATTERN.fullmatch(value):
        raise binascii.Error("Input is not valid base64url")
    value = value.rstrip(b"=")
    value += b"=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value)
