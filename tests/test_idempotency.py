"""
Tests for the idempotency store and gate
"""

import asyncio
import uuid

import pytest
from starlette.responses import RedirectResponse, Response

from newsletter.errors import UnexpectedError
from newsletter.services.idempotency import (
    IdempotencyService,
    ReturnSavedResponse,
    SqlIdempotencyStore,
    StartProcessing,
    build_response,
    serialize_headers,
)


@pytest.fixture
def store(session_factory):
    return SqlIdempotencyStore(session_factory)


@pytest.fixture
def service(store, executor):
    return IdempotencyService(store, executor, poll_interval=0.01, wait_timeout=2.0)


class TestHeaderSerialization:
    """Tests for serialize_headers / build_response."""

    def test_headers_keep_order_and_duplicates(self):
        raw_headers = [
            (b"location", b"/admin/newsletter"),
            (b"x-custom", b"one"),
            (b"x-custom", b"two"),
            (b"x-binary", bytes([0, 255, 10])),
        ]

        rebuilt = build_response(303, serialize_headers(raw_headers), b"")

        assert rebuilt.status_code == 303
        assert rebuilt.raw_headers == raw_headers
        assert rebuilt.body == b""


class TestSqlIdempotencyStore:
    """Tests for SqlIdempotencyStore."""

    def test_only_first_insert_wins(self, store, admin_user_id):
        assert store.try_insert(admin_user_id, "k1") is True
        assert store.try_insert(admin_user_id, "k1") is False

    def test_same_key_is_scoped_per_user(self, store, admin_user_id, session_factory, executor):
        from newsletter.services.authentication import CredentialVerifier

        other_user_id = CredentialVerifier(session_factory, executor).create_user("editor", "password")

        assert store.try_insert(admin_user_id, "k1") is True
        assert store.try_insert(other_user_id, "k1") is True

    def test_record_without_response_reads_as_none(self, store, admin_user_id):
        store.try_insert(admin_user_id, "k1")

        assert store.get_saved_response(admin_user_id, "k1") is None
        assert store.get_saved_response(admin_user_id, "unknown") is None

    def test_saved_response_round_trips_status_headers_and_body(self, store, admin_user_id):
        store.try_insert(admin_user_id, "k1")
        original = Response(content=b"<p>published</p>", status_code=201, headers={"x-trace": "abc"})

        returned = store.save_response(admin_user_id, "k1", original)
        saved = store.get_saved_response(admin_user_id, "k1")

        for response in (returned, saved):
            assert response.status_code == 201
            assert response.raw_headers == original.raw_headers
            assert response.body == b"<p>published</p>"


    def test_discard_frees_a_pending_key(self, store, admin_user_id):
        store.try_insert(admin_user_id, "k1")

        store.discard(admin_user_id, "k1")

        assert store.try_insert(admin_user_id, "k1") is True

    def test_discard_keeps_saved_responses(self, store, admin_user_id):
        store.try_insert(admin_user_id, "k1")
        store.save_response(admin_user_id, "k1", RedirectResponse("/admin/newsletter", status_code=303))

        store.discard(admin_user_id, "k1")

        assert store.get_saved_response(admin_user_id, "k1").status_code == 303
        assert store.try_insert(admin_user_id, "k1") is False


class TestIdempotencyService:
    """Tests for the async concurrency gate."""

    @pytest.mark.anyio
    async def test_first_caller_starts_processing(self, service, admin_user_id):
        assert isinstance(await service.try_processing(admin_user_id, "k1"), StartProcessing)

    @pytest.mark.anyio
    async def test_later_caller_waits_for_saved_response(self, service, admin_user_id):
        assert isinstance(await service.try_processing(admin_user_id, "k1"), StartProcessing)

        async def finish_first_attempt():
            await asyncio.sleep(0.1)
            await service.save_response(admin_user_id, "k1", RedirectResponse("/admin/newsletter", status_code=303))

        waiter = asyncio.create_task(service.try_processing(admin_user_id, "k1"))
        await finish_first_attempt()
        next_action = await waiter

        assert isinstance(next_action, ReturnSavedResponse)
        assert next_action.response.status_code == 303
        assert next_action.response.headers["location"] == "/admin/newsletter"

    @pytest.mark.anyio
    async def test_waiter_takes_over_a_discarded_key(self, service, admin_user_id):
        assert isinstance(await service.try_processing(admin_user_id, "k1"), StartProcessing)

        waiter = asyncio.create_task(service.try_processing(admin_user_id, "k1"))
        await asyncio.sleep(0.05)
        await service.discard(admin_user_id, "k1")

        assert isinstance(await waiter, StartProcessing)

    @pytest.mark.anyio
    async def test_wait_gives_up_after_timeout(self, store, executor, admin_user_id):
        service = IdempotencyService(store, executor, poll_interval=0.01, wait_timeout=0.1)
        await service.try_processing(admin_user_id, "k1")

        with pytest.raises(UnexpectedError, match="Timed out"):
            await service.try_processing(admin_user_id, "k1")

    @pytest.mark.anyio
    async def test_unknown_user_fails_with_unexpected_error(self, service):
        with pytest.raises(UnexpectedError):
            await service.try_processing(uuid.uuid4(), "k1")
