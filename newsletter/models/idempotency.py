"""
Idempotency Model
Saved HTTP responses keyed by (user, idempotency key)
"""

from sqlalchemy import Column, DateTime, ForeignKey, JSON, LargeBinary, SmallInteger, String, Uuid
from sqlalchemy.sql import func

from newsletter.database import Base


class Idempotency(Base):
    """
    Idempotency record for the publish endpoint.

    Inserted with NULL response columns when an attempt starts (the insert is
    the concurrency gate) and populated once by that same attempt.
    response_headers is a JSON list of {"name": str, "value": base64} objects
    in the order they were sent.
    """
    __tablename__ = "idempotency"

    user_id = Column(Uuid, ForeignKey("users.user_id"), primary_key=True)
    idempotency_key = Column(String(50), primary_key=True)

    # Cached response, NULL until the first attempt completes
    response_status_code = Column(SmallInteger, nullable=True)
    response_headers = Column(JSON, nullable=True)
    response_body = Column(LargeBinary, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return (
            f"<Idempotency(user_id={self.user_id}, key='{self.idempotency_key}', "
            f"status={self.response_status_code})>"
        )
