"""
Subscription Models
Subscribers and their one-time confirmation tokens
"""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.sql import func

from newsletter.database import Base


class SubscriptionStatus:
    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"


class Subscription(Base):
    """
    A newsletter subscriber.

    Created as pending_confirmation by the subscribe endpoint and flipped to
    confirmed by the confirmation link. Never deleted.
    """
    __tablename__ = "subscriptions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(320), unique=True, nullable=False)
    name = Column(String(256), nullable=False)
    status = Column(String(50), nullable=False, default=SubscriptionStatus.PENDING_CONFIRMATION)
    subscribed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Subscription(id={self.id}, email='{self.email}', status='{self.status}')>"


class SubscriptionToken(Base):
    """Maps a confirmation token to exactly one subscriber."""
    __tablename__ = "subscription_tokens"

    subscription_token = Column(String(25), primary_key=True)
    subscriber_id = Column(Uuid, ForeignKey("subscriptions.id"), nullable=False)

    def __repr__(self):
        return f"<SubscriptionToken(subscriber_id={self.subscriber_id})>"
