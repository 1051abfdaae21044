"""Stored VAPID identity."""
from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from push_notifier.db.base import Base


class PushConfig(Base):
    """Single-row table holding the deployment's VAPID key pair."""

    __tablename__ = "push_config"

    id = Column(Integer, primary_key=True)
    vapid_public_key = Column(String(128), nullable=False)
    vapid_private_key = Column(Text, nullable=False)  # JWK JSON, never returned by the API
    vapid_subject = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
