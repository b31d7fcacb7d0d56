"""
NewsletterIssue Model
"""

import uuid

from sqlalchemy import Column, DateTime, String, Text, Uuid
from sqlalchemy.sql import func

from newsletter.database import Base


class NewsletterIssue(Base):
    """A published newsletter issue. Immutable once inserted."""
    __tablename__ = "newsletter_issues"

    newsletter_issue_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(512), nullable=False)
    text_content = Column(Text, nullable=False)
    html_content = Column(Text, nullable=False)
    published_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<NewsletterIssue(id={self.newsletter_issue_id}, title='{self.title}')>"
