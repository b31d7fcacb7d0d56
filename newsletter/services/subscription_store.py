"""
Subscription Store
Durable record of subscribers, their confirmation tokens and status
"""

from abc import ABC, abstractmethod
import secrets
import string
import uuid

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from newsletter.domain import NewSubscriber
from newsletter.errors import UnexpectedError
from newsletter.models import Subscription, SubscriptionStatus, SubscriptionToken

logger = structlog.get_logger(__name__)

TOKEN_ALPHABET = string.ascii_letters + string.digits
TOKEN_LENGTH = 25


def generate_subscription_token() -> str:
    """Random 25 character alphanumeric confirmation token."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))


class UnknownSubscriptionToken(UnexpectedError):
    """No subscriber is associated with the given token."""


class SubscriptionStore(ABC):
    """Persistence capability for the subscription lifecycle."""

    @abstractmethod
    def insert_subscriber(self, new_subscriber: NewSubscriber) -> str:
        """
        Insert a pending subscriber and its confirmation token atomically.

        Returns:
            The confirmation token
        """

    @abstractmethod
    def get_subscriber_id_from_token(self, subscription_token: str) -> uuid.UUID:
        """
        Raises:
            UnknownSubscriptionToken: if no subscriber owns the token
        """

    @abstractmethod
    def confirm_subscriber(self, subscriber_id: uuid.UUID) -> None:
        """Mark a subscriber as confirmed. Confirming twice is a no-op."""


class SqlSubscriptionStore(SubscriptionStore):
    """SubscriptionStore on the relational database."""

    def __init__(self, session_factory: sessionmaker):
        """
        Args:
            session_factory: SQLAlchemy sessionmaker (each call runs its own transaction)
        """
        self.session_factory = session_factory
        self.logger = logger.bind(service="subscription_store")

    def insert_subscriber(self, new_subscriber: NewSubscriber) -> str:
        subscriber_id = uuid.uuid4()
        subscription_token = generate_subscription_token()

        try:
            with self.session_factory() as session, session.begin():
                session.add(Subscription(
                    id=subscriber_id,
                    email=new_subscriber.email,
                    name=new_subscriber.name,
                    status=SubscriptionStatus.PENDING_CONFIRMATION,
                ))
                # Flush the subscriber before the token row that references it
                session.flush()
                session.add(SubscriptionToken(
                    subscription_token=subscription_token,
                    subscriber_id=subscriber_id,
                ))
        except SQLAlchemyError as e:
            raise UnexpectedError("Failed to insert new subscriber in the database.") from e

        self.logger.info("subscriber_inserted", subscriber_id=str(subscriber_id))
        return subscription_token

    def get_subscriber_id_from_token(self, subscription_token: str) -> uuid.UUID:
        try:
            with self.session_factory() as session:
                subscriber_id = session.execute(
                    select(SubscriptionToken.subscriber_id).where(
                        SubscriptionToken.subscription_token == subscription_token
                    )
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise UnexpectedError("Failed to fetch subscriber_id from subscription_tokens.") from e

        if subscriber_id is None:
            raise UnknownSubscriptionToken("No subscriber is associated with the provided token.")
        return subscriber_id

    def confirm_subscriber(self, subscriber_id: uuid.UUID) -> None:
        try:
            with self.session_factory() as session, session.begin():
                session.execute(
                    update(Subscription)
                    .where(Subscription.id == subscriber_id)
                    .values(status=SubscriptionStatus.CONFIRMED)
                )
        except SQLAlchemyError as e:
            raise UnexpectedError("Failed to update subscription status.") from e

        self.logger.info("subscriber_confirmed", subscriber_id=str(subscriber_id))
