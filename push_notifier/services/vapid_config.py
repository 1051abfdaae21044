"""Resolve the deployment's VAPID identity."""
from __future__ import annotations

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from push_notifier.config import Settings, settings as default_settings
from push_notifier.core.webpush import VapidConfig, generate_vapid_keys
from push_notifier.db.models.push_config import PushConfig
from push_notifier.utils.exceptions import VapidConfigurationError


def _from_settings(app_settings: Settings) -> VapidConfig:
    if not app_settings.VAPID_PRIVATE_KEY:
        raise VapidConfigurationError(
            "VAPID_PUBLIC_KEY is set but VAPID_PRIVATE_KEY is missing"
        )
    return VapidConfig.from_keys(
        app_settings.VAPID_PUBLIC_KEY,
        app_settings.VAPID_PRIVATE_KEY,
        app_settings.VAPID_SUBJECT,
    )


def get_or_create_push_config(db: Session, app_settings: Settings = default_settings) -> PushConfig:
    """Return the stored key pair, generating it on first use when allowed."""

    config = db.scalars(select(PushConfig).order_by(PushConfig.id).limit(1)).first()
    if config is not None:
        return config
    if not app_settings.VAPID_AUTO_GENERATE:
        raise VapidConfigurationError("No VAPID keys configured and auto-generation is disabled")

    keys = generate_vapid_keys()
    config = PushConfig(
        vapid_public_key=keys.public_key,
        vapid_private_key=keys.private_key,
        vapid_subject=app_settings.VAPID_SUBJECT,
    )
    db.add(config)
    db.commit()
    db.refresh(config)
    logger.info("Generated VAPID key pair", public_key=f"{keys.public_key[:20]}...")
    return config


def resolve_vapid_config(
    db: Session | None = None, app_settings: Settings = default_settings
) -> VapidConfig:
    """Environment keys win over the ``push_config`` row.

    Raises :class:`VapidConfigurationError` when no usable pair exists;
    nothing can be sent in that state.
    """

    if app_settings.VAPID_PUBLIC_KEY or app_settings.VAPID_PRIVATE_KEY:
        return _from_settings(app_settings)
    if db is None:
        raise VapidConfigurationError("No VAPID keys configured")
    stored = get_or_create_push_config(db, app_settings)
    return VapidConfig.from_keys(
        stored.vapid_public_key, stored.vapid_private_key, stored.vapid_subject
    )
