"""
Tests for credential verification and password hashing
"""

import uuid

import pytest
from sqlalchemy import select

from newsletter.errors import InvalidCredentials, UnexpectedError
from newsletter.models import User
from newsletter.services.authentication import (
    DUMMY_PASSWORD_HASH,
    CredentialVerifier,
    Credentials,
    compute_password_hash,
    verify_password_hash,
)

from conftest import ADMIN_PASSWORD, ADMIN_USERNAME


@pytest.fixture
def verifier(session_factory, executor):
    return CredentialVerifier(session_factory, executor)


class TestPasswordHash:
    """Tests for compute_password_hash / verify_password_hash."""

    def test_hash_is_argon2id_phc_string_with_random_salt(self):
        first = compute_password_hash("secret")
        second = compute_password_hash("secret")

        assert first.startswith("$argon2id$v=19$m=15000,t=2,p=1$")
        assert first != second

    def test_matching_password_verifies(self):
        verify_password_hash(compute_password_hash("secret"), "secret")

    def test_wrong_password_raises_invalid_credentials(self):
        with pytest.raises(InvalidCredentials):
            verify_password_hash(compute_password_hash("secret"), "not-secret")

    def test_dummy_hash_never_matches_empty_password(self):
        with pytest.raises(InvalidCredentials):
            verify_password_hash(DUMMY_PASSWORD_HASH, "")

    def test_malformed_hash_raises_unexpected_error(self):
        with pytest.raises(UnexpectedError):
            verify_password_hash("not-a-phc-string", "secret")


class TestCredentialVerifier:
    """Tests for CredentialVerifier."""

    @pytest.mark.anyio
    async def test_valid_credentials_return_user_id(self, verifier, admin_user_id):
        user_id = await verifier.validate_credentials(Credentials(ADMIN_USERNAME, ADMIN_PASSWORD))

        assert user_id == admin_user_id

    @pytest.mark.anyio
    async def test_wrong_password_is_rejected(self, verifier, admin_user_id):
        with pytest.raises(InvalidCredentials):
            await verifier.validate_credentials(Credentials(ADMIN_USERNAME, "wrong-password"))

    @pytest.mark.anyio
    async def test_unknown_username_is_rejected(self, verifier, admin_user_id):
        with pytest.raises(InvalidCredentials):
            await verifier.validate_credentials(Credentials("nobody", ADMIN_PASSWORD))

    @pytest.mark.anyio
    async def test_change_password_replaces_hash(self, verifier, admin_user_id, session_factory):
        await verifier.change_password(admin_user_id, "new-password")

        with session_factory() as session:
            stored_hash = session.execute(
                select(User.password_hash).where(User.user_id == admin_user_id)
            ).scalar_one()
        verify_password_hash(stored_hash, "new-password")
        with pytest.raises(InvalidCredentials):
            await verifier.validate_credentials(Credentials(ADMIN_USERNAME, ADMIN_PASSWORD))

    @pytest.mark.anyio
    async def test_get_username(self, verifier, admin_user_id):
        assert await verifier.get_username(admin_user_id) == ADMIN_USERNAME

    @pytest.mark.anyio
    async def test_get_username_of_unknown_user_fails(self, verifier):
        with pytest.raises(UnexpectedError):
            await verifier.get_username(uuid.uuid4())

    def test_credentials_repr_hides_password(self):
        assert ADMIN_PASSWORD not in repr(Credentials(ADMIN_USERNAME, ADMIN_PASSWORD))
