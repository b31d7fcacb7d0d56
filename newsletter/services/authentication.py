"""
Credential Verifier
Checks admin username/password pairs against stored argon2id hashes
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import uuid

import structlog
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, VerifyMismatchError, InvalidHashError
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from newsletter.concurrency import BlockingExecutor
from newsletter.errors import InvalidCredentials, UnexpectedError
from newsletter.models import User

logger = structlog.get_logger(__name__)

# Verified against when the username is unknown, so both paths cost one hash
DUMMY_PASSWORD_HASH = (
    "$argon2id$v=19$m=15000,t=2,p=1$"
    "gZiV/M1gPc22ElAH/Jh1Hw$"
    "CWOrkoo7oJBQ/iyh7uJ0LO2aLEfrHwTWllSAxT0zRno"
)

password_hasher = PasswordHasher(time_cost=2, memory_cost=15000, parallelism=1)


@dataclass
class Credentials:
    username: str
    password: str

    def __repr__(self):
        return f"Credentials(username={self.username!r}, password='***')"


def compute_password_hash(password: str) -> str:
    """Hash a password with a fresh random salt (PHC string format)."""
    return password_hasher.hash(password)


def verify_password_hash(expected_password_hash: str, password_candidate: str) -> None:
    """
    Check a candidate password against a stored hash.

    Raises:
        InvalidCredentials: the password does not match
        UnexpectedError: the stored hash could not be parsed
    """
    try:
        password_hasher.verify(expected_password_hash, password_candidate)
    except VerifyMismatchError as e:
        raise InvalidCredentials("Invalid password.") from e
    except (InvalidHashError, VerificationError) as e:
        raise UnexpectedError("Failed to parse hash in PHC string format.") from e


class CredentialVerifier:
    """
    Validates credentials and manages stored password hashes.

    Database access and hashing both run on the blocking executor.
    """

    def __init__(self, session_factory: sessionmaker, executor: BlockingExecutor):
        self.session_factory = session_factory
        self.executor = executor
        self.logger = logger.bind(service="authentication")

    def get_stored_credentials(self, username: str) -> Optional[Tuple[str, uuid.UUID]]:
        """
        Look up the password hash and user id for a username.

        Returns:
            (password_hash, user_id) or None when the username is unknown
        """
        try:
            with self.session_factory() as session:
                row = session.execute(
                    select(User.password_hash, User.user_id).where(User.username == username)
                ).first()
        except SQLAlchemyError as e:
            raise UnexpectedError("Failed to perform a query to retrieve stored credentials.") from e

        if row is None:
            return None
        return row.password_hash, row.user_id

    async def validate_credentials(self, credentials: Credentials) -> uuid.UUID:
        """
        Validate a username/password pair.

        Returns:
            user_id of the matching account

        Raises:
            InvalidCredentials: unknown username or wrong password
            UnexpectedError: storage or executor failure
        """
        user_id = None
        expected_password_hash = DUMMY_PASSWORD_HASH

        stored = await self.executor.run(self.get_stored_credentials, credentials.username)
        if stored is not None:
            expected_password_hash, user_id = stored

        await self.executor.run(verify_password_hash, expected_password_hash, credentials.password)

        if user_id is None:
            self.logger.info("login_unknown_username", username=credentials.username)
            raise InvalidCredentials("Unknown username.")

        return user_id

    def _store_password_hash(self, user_id: uuid.UUID, password: str) -> None:
        password_hash = compute_password_hash(password)
        try:
            with self.session_factory() as session, session.begin():
                session.execute(
                    update(User).where(User.user_id == user_id).values(password_hash=password_hash)
                )
        except SQLAlchemyError as e:
            raise UnexpectedError("Failed to change user's password in the database.") from e

    async def change_password(self, user_id: uuid.UUID, new_password: str) -> None:
        """Hash and store a new password for an existing user."""
        await self.executor.run(self._store_password_hash, user_id, new_password)
        self.logger.info("password_changed", user_id=str(user_id))

    def _query_username(self, user_id: uuid.UUID) -> str:
        try:
            with self.session_factory() as session:
                username = session.execute(
                    select(User.username).where(User.user_id == user_id)
                ).scalar_one()
        except SQLAlchemyError as e:
            raise UnexpectedError("Failed to perform a query to retrieve a username.") from e
        return username

    async def get_username(self, user_id: uuid.UUID) -> str:
        """
        Raises:
            UnexpectedError: if the user does not exist or the query fails
        """
        return await self.executor.run(self._query_username, user_id)

    def create_user(self, username: str, password: str) -> uuid.UUID:
        """Insert a new admin account. Used by scripts/create_admin.py and tests."""
        user = User(user_id=uuid.uuid4(), username=username, password_hash=compute_password_hash(password))
        with self.session_factory() as session, session.begin():
            session.add(user)
        self.logger.info("user_created", user_id=str(user.user_id), username=username)
        return user.user_id
