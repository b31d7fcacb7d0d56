"""
IssueDeliveryQueue Model
Durable work list of (issue, subscriber email) pairs still to be sent
"""

from sqlalchemy import Column, ForeignKey, String, Uuid

from newsletter.database import Base


class IssueDeliveryQueue(Base):
    """
    One pending delivery of an issue to a subscriber address.

    Rows are created in bulk in the same transaction as the issue and
    deleted by the delivery worker once the send has been attempted.
    """
    __tablename__ = "issue_delivery_queue"

    newsletter_issue_id = Column(
        Uuid,
        ForeignKey("newsletter_issues.newsletter_issue_id"),
        primary_key=True,
    )
    subscriber_email = Column(String(320), primary_key=True)

    def __repr__(self):
        return f"<IssueDeliveryQueue(issue={self.newsletter_issue_id}, email='{self.subscriber_email}')>"
