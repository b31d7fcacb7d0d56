"""
Database Models
"""

from newsletter.models.subscription import Subscription, SubscriptionToken, SubscriptionStatus
from newsletter.models.newsletter_issue import NewsletterIssue
from newsletter.models.issue_delivery_queue import IssueDeliveryQueue
from newsletter.models.idempotency import Idempotency
from newsletter.models.user import User

__all__ = [
    "Subscription",
    "SubscriptionToken",
    "SubscriptionStatus",
    "NewsletterIssue",
    "IssueDeliveryQueue",
    "Idempotency",
    "User",
]
