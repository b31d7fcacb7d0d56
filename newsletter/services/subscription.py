"""
Subscription Service
Subscribe and confirm flows on top of a SubscriptionStore and an EmailSender
"""

import structlog

from newsletter.concurrency import BlockingExecutor
from newsletter.domain import NewSubscriber
from newsletter.errors import EmailSendError, UnexpectedError
from newsletter.services.email_client import EmailSender
from newsletter.services.subscription_store import SubscriptionStore

logger = structlog.get_logger(__name__)


def build_confirmation_link(base_url: str, subscription_token: str) -> str:
    return f"{base_url.rstrip('/')}/subscriptions/confirm?subscription_token={subscription_token}"


class SubscriptionService:
    """
    Double opt-in subscription flow.

    The confirmation email is sent after the subscriber transaction commits,
    so a failed send leaves a pending subscriber behind.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        email_sender: EmailSender,
        executor: BlockingExecutor,
        base_url: str,
    ):
        self.store = store
        self.email_sender = email_sender
        self.executor = executor
        self.base_url = base_url
        self.logger = logger.bind(service="subscription")

    async def create_subscription(self, name: str, email: str) -> None:
        """
        Validate, store and send the confirmation email.

        Raises:
            ValidationError: invalid name or email (nothing is stored)
            UnexpectedError: storage failure or confirmation email not sent
        """
        new_subscriber = NewSubscriber.parse(name=name, email=email)
        log = self.logger.bind(subscriber_email=new_subscriber.email, subscriber_name=new_subscriber.name)

        subscription_token = await self.executor.run(self.store.insert_subscriber, new_subscriber)
        log.info("new_subscriber_saved")

        try:
            await self.executor.run(self.send_confirmation_email, new_subscriber, subscription_token)
        except EmailSendError as e:
            raise UnexpectedError("Failed to send a confirmation email.") from e

        log.info("confirmation_email_sent")

    def send_confirmation_email(self, new_subscriber: NewSubscriber, subscription_token: str) -> None:
        confirmation_link = build_confirmation_link(self.base_url, subscription_token)
        self.email_sender.send_email(
            new_subscriber.email,
            "Welcome!",
            f'Welcome to our newsletter!<br />Click <a href="{confirmation_link}">here</a> to confirm your subscription.',
            f"Welcome to our newsletter!\nVisit {confirmation_link} to confirm your subscription.",
        )

    async def confirm_subscription(self, subscription_token: str) -> None:
        """
        Confirm the subscriber owning the token.

        Raises:
            UnexpectedError: unknown token or storage failure
        """
        subscriber_id = await self.executor.run(self.store.get_subscriber_id_from_token, subscription_token)
        await self.executor.run(self.store.confirm_subscriber, subscriber_id)
