"""
User Model
Admin accounts allowed to publish newsletter issues
"""

import uuid

from sqlalchemy import Column, String, Text, Uuid

from newsletter.database import Base


class User(Base):
    __tablename__ = "users"

    user_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(255), unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)  # argon2id, PHC string format

    def __repr__(self):
        return f"<User(user_id={self.user_id}, username='{self.username}')>"
