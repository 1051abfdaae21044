"""Pytest fixtures for the push notifier."""

import hashlib
import hmac
import os
import struct
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from typing import List

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("INTERNAL_API_KEY", "internal-test-key")
os.environ.setdefault("VAPID_PUBLIC_KEY", "")
os.environ.setdefault("VAPID_PRIVATE_KEY", "")
os.environ.setdefault("PUSH_RETRY_BACKOFF_SECONDS", "0")

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from push_notifier.api.deps import get_db, get_delivery_client
from push_notifier.core.security import create_access_token
from push_notifier.core.webpush import VapidConfig, b64url_encode, generate_vapid_keys
from push_notifier.db import models  # noqa: F401  # Imported for side effects
from push_notifier.db.base import Base
from push_notifier.db.models import User
from push_notifier.main import create_app
from push_notifier.services.push_delivery import PushDeliveryClient


@pytest.fixture(scope="session")
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session(db_engine) -> Generator[Session, None, None]:
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=db_engine
    )
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()
        db.close()


@dataclass
class FakePushService:
    """Records POSTs and answers with queued status codes (default 201)."""

    statuses: List[int] = field(default_factory=list)
    requests: List[httpx.Request] = field(default_factory=list)
    raise_error: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_error is not None:
            raise self.raise_error
        status = self.statuses.pop(0) if self.statuses else 201
        return httpx.Response(status, text="" if status < 400 else "push service error")

    def client(self) -> PushDeliveryClient:
        return PushDeliveryClient(transport=httpx.MockTransport(self))


@pytest.fixture()
def push_service() -> FakePushService:
    return FakePushService()


@pytest.fixture()
def client(db_session: Session, push_service: FakePushService) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_delivery_client] = push_service.client
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def user(db_session: Session) -> User:
    account = User(email="gerente@example.com", full_name="Gerente", is_active=True)
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture()
def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@dataclass
class BrowserKeys:
    """What a browser keeps after subscribing: its ECDH key and auth secret."""

    private_key: ec.EllipticCurvePrivateKey
    auth: bytes

    @property
    def public_bytes(self) -> bytes:
        return self.private_key.public_key().public_bytes(
            serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
        )

    def subscription_info(self, endpoint: str) -> dict:
        return {
            "endpoint": endpoint,
            "keys": {"p256dh": b64url_encode(self.public_bytes), "auth": b64url_encode(self.auth)},
        }


@pytest.fixture()
def browser_keys() -> BrowserKeys:
    return BrowserKeys(private_key=ec.generate_private_key(ec.SECP256R1()), auth=os.urandom(16))


@pytest.fixture(scope="session")
def vapid_config() -> VapidConfig:
    keys = generate_vapid_keys()
    return VapidConfig.from_keys(keys.public_key, keys.private_key, "mailto:ops@example.com")


def _hmac_sha256(key: bytes, data: bytes) -> bytes:
    return hmac.new(key, data, hashlib.sha256).digest()


@pytest.fixture(scope="session")
def reference_decrypt() -> Callable[[bytes, ec.EllipticCurvePrivateKey, bytes], bytes]:
    """Receiver-side RFC 8291 decryption written out step by step."""

    def decrypt(body: bytes, private_key: ec.EllipticCurvePrivateKey, auth: bytes) -> bytes:
        salt = body[:16]
        (record_size,) = struct.unpack("!I", body[16:20])
        keyid_length = body[20]
        sender_public = body[21 : 21 + keyid_length]
        ciphertext = body[21 + keyid_length :]
        assert len(ciphertext) <= record_size

        receiver_public = private_key.public_key().public_bytes(
            serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
        )
        sender_key = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), sender_public)
        shared = private_key.exchange(ec.ECDH(), sender_key)

        prk_key = _hmac_sha256(auth, shared)
        key_info = b"WebPush: info\x00" + receiver_public + sender_public
        ikm = _hmac_sha256(prk_key, key_info + b"\x01")[:32]
        prk = _hmac_sha256(salt, ikm)
        cek = _hmac_sha256(prk, b"Content-Encoding: aes128gcm\x00\x01")[:16]
        nonce = _hmac_sha256(prk, b"Content-Encoding: nonce\x00\x01")[:12]

        padded = AESGCM(cek).decrypt(nonce, ciphertext, None)
        padded = padded.rstrip(b"\x00")
        assert padded.endswith(b"\x02")
        return padded[:-1]

    return decrypt
