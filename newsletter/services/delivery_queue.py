"""
Delivery Queue
Durable (issue, subscriber email) work list claimed with row-level locks
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
import uuid

from sqlalchemy import delete, insert, literal, select, Uuid
from sqlalchemy.orm import Session

from newsletter.models import IssueDeliveryQueue, NewsletterIssue, Subscription, SubscriptionStatus


@dataclass(frozen=True)
class DeliveryTask:
    newsletter_issue_id: uuid.UUID
    subscriber_email: str


class DeliveryQueue(ABC):
    """
    Work queue capability.

    Every method runs inside the caller's session so the caller owns the
    transaction: enqueueing commits with the issue insert, and a claimed
    task stays locked until the worker commits its deletion.
    """

    @abstractmethod
    def enqueue_for_confirmed_subscribers(self, session: Session, newsletter_issue_id: uuid.UUID) -> int:
        """
        Queue one task per confirmed subscriber.

        Returns:
            Number of tasks enqueued
        """

    @abstractmethod
    def dequeue(self, session: Session) -> Optional[DeliveryTask]:
        """Claim one task not locked by another transaction, or None."""

    @abstractmethod
    def remove(self, session: Session, task: DeliveryTask) -> None:
        """Delete a claimed task."""

    @abstractmethod
    def get_issue(self, session: Session, newsletter_issue_id: uuid.UUID) -> NewsletterIssue:
        """Load the issue content for a task."""


class SqlDeliveryQueue(DeliveryQueue):
    """DeliveryQueue on the `issue_delivery_queue` table."""

    def enqueue_for_confirmed_subscribers(self, session: Session, newsletter_issue_id: uuid.UUID) -> int:
        # Single INSERT ... SELECT, no row-by-row fan out
        confirmed_emails = select(
            literal(newsletter_issue_id, Uuid),
            Subscription.email,
        ).where(Subscription.status == SubscriptionStatus.CONFIRMED)

        result = session.execute(
            insert(IssueDeliveryQueue).from_select(
                ["newsletter_issue_id", "subscriber_email"],
                confirmed_emails,
            )
        )
        return result.rowcount

    def dequeue(self, session: Session) -> Optional[DeliveryTask]:
        row = session.execute(
            select(IssueDeliveryQueue.newsletter_issue_id, IssueDeliveryQueue.subscriber_email)
            .limit(1)
            .with_for_update(skip_locked=True)
        ).first()

        if row is None:
            return None
        return DeliveryTask(row.newsletter_issue_id, row.subscriber_email)

    def remove(self, session: Session, task: DeliveryTask) -> None:
        session.execute(
            delete(IssueDeliveryQueue).where(
                IssueDeliveryQueue.newsletter_issue_id == task.newsletter_issue_id,
                IssueDeliveryQueue.subscriber_email == task.subscriber_email,
            )
        )

    def get_issue(self, session: Session, newsletter_issue_id: uuid.UUID) -> NewsletterIssue:
        return session.execute(
            select(NewsletterIssue).where(NewsletterIssue.newsletter_issue_id == newsletter_issue_id)
        ).scalar_one()
