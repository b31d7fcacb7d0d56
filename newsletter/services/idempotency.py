"""
Idempotency Service
Database-backed concurrency gate and response cache for retry-safe POST endpoints
"""

from abc import ABC, abstractmethod
import asyncio
import base64
from dataclasses import dataclass
import time
from typing import List, Optional, Union
import uuid

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from starlette.responses import Response

from newsletter.concurrency import BlockingExecutor
from newsletter.database import insert_ignoring_conflicts
from newsletter.errors import UnexpectedError
from newsletter.models import Idempotency

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StartProcessing:
    """This request won the gate and must do the work."""


@dataclass(frozen=True)
class ReturnSavedResponse:
    """Another attempt already did the work; replay its response."""
    response: Response


NextAction = Union[StartProcessing, ReturnSavedResponse]


def serialize_headers(raw_headers: List[tuple]) -> List[dict]:
    """Encode raw (name, value) byte pairs as JSON-safe dicts, preserving order."""
    return [
        {"name": name.decode("latin-1"), "value": base64.b64encode(value).decode("ascii")}
        for name, value in raw_headers
    ]


def build_response(status_code: int, headers: List[dict], body: bytes) -> Response:
    """Rebuild a response with exactly the saved status, header list and body."""
    response = Response(content=body, status_code=status_code)
    response.raw_headers = [
        (header["name"].encode("latin-1"), base64.b64decode(header["value"]))
        for header in headers
    ]
    return response


class IdempotencyStore(ABC):
    """Persistence capability for idempotency records (blocking calls)."""

    @abstractmethod
    def try_insert(self, user_id: uuid.UUID, idempotency_key: str) -> bool:
        """
        Insert an empty record unless one already exists.

        Returns:
            True if this call created the record
        """

    @abstractmethod
    def get_saved_response(self, user_id: uuid.UUID, idempotency_key: str) -> Optional[Response]:
        """Saved response, or None if no record exists or it is not populated yet."""

    @abstractmethod
    def save_response(self, user_id: uuid.UUID, idempotency_key: str, response: Response) -> Response:
        """Populate the record and return an equivalent response."""

    @abstractmethod
    def discard(self, user_id: uuid.UUID, idempotency_key: str) -> None:
        """Delete a record whose response was never saved, so the key can be retried."""


class SqlIdempotencyStore(IdempotencyStore):
    """IdempotencyStore on the `idempotency` table."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self.logger = logger.bind(service="idempotency")

    def try_insert(self, user_id: uuid.UUID, idempotency_key: str) -> bool:
        try:
            with self.session_factory() as session, session.begin():
                # INSERT ... ON CONFLICT DO NOTHING: exactly one concurrent caller gets rowcount 1
                stmt = insert_ignoring_conflicts(
                    session,
                    Idempotency,
                    index_elements=["user_id", "idempotency_key"],
                    user_id=user_id,
                    idempotency_key=idempotency_key,
                    response_status_code=None,
                    response_headers=None,
                    response_body=None,
                )
                inserted = session.execute(stmt).rowcount > 0
        except SQLAlchemyError as e:
            raise UnexpectedError("Failed to insert idempotency record.") from e

        self.logger.debug("idempotency_gate", idempotency_key=idempotency_key, inserted=inserted)
        return inserted

    def get_saved_response(self, user_id: uuid.UUID, idempotency_key: str) -> Optional[Response]:
        try:
            with self.session_factory() as session:
                row = session.execute(
                    select(
                        Idempotency.response_status_code,
                        Idempotency.response_headers,
                        Idempotency.response_body,
                    ).where(
                        Idempotency.user_id == user_id,
                        Idempotency.idempotency_key == idempotency_key,
                    )
                ).first()
        except SQLAlchemyError as e:
            raise UnexpectedError("Failed to fetch saved response from the database.") from e

        if row is None or row.response_status_code is None:
            return None

        return build_response(row.response_status_code, row.response_headers or [], row.response_body or b"")

    def save_response(self, user_id: uuid.UUID, idempotency_key: str, response: Response) -> Response:
        status_code = response.status_code
        headers = serialize_headers(response.raw_headers)
        body = bytes(response.body)

        try:
            with self.session_factory() as session, session.begin():
                session.execute(
                    update(Idempotency)
                    .where(
                        Idempotency.user_id == user_id,
                        Idempotency.idempotency_key == idempotency_key,
                    )
                    .values(
                        response_status_code=status_code,
                        response_headers=headers,
                        response_body=body,
                    )
                )
        except SQLAlchemyError as e:
            raise UnexpectedError("Failed to update saved response.") from e

        self.logger.info("idempotency_response_saved", idempotency_key=idempotency_key, status_code=status_code)
        return build_response(status_code, headers, body)

    def discard(self, user_id: uuid.UUID, idempotency_key: str) -> None:
        try:
            with self.session_factory() as session, session.begin():
                session.execute(
                    delete(Idempotency).where(
                        Idempotency.user_id == user_id,
                        Idempotency.idempotency_key == idempotency_key,
                        Idempotency.response_status_code.is_(None),
                    )
                )
        except SQLAlchemyError as e:
            raise UnexpectedError("Failed to discard idempotency record.") from e

        self.logger.info("idempotency_record_discarded", idempotency_key=idempotency_key)


class IdempotencyService:
    """
    Async front of an IdempotencyStore.

    try_processing is the concurrency gate: the first caller for a
    (user, key) proceeds, every later caller waits for the saved response.
    discard releases the key after a failed attempt.
    """

    def __init__(
        self,
        store: IdempotencyStore,
        executor: BlockingExecutor,
        poll_interval: float = 0.05,
        wait_timeout: Optional[float] = None,
    ):
        """
        Args:
            store: Blocking persistence for idempotency records
            executor: Executor the store calls run on
            poll_interval: Seconds between polls while waiting for a saved response
            wait_timeout: Give up waiting after this many seconds (None waits forever)
        """
        self.store = store
        self.executor = executor
        self.poll_interval = poll_interval
        self.wait_timeout = wait_timeout
        self.logger = logger.bind(service="idempotency")

    async def try_processing(self, user_id: uuid.UUID, idempotency_key: str) -> NextAction:
        """
        Claim the key or wait for the attempt that holds it.

        The insert is retried on every poll: if the holding attempt failed and
        discarded its record, the next waiter takes the key over.
        """
        started = time.monotonic()
        while True:
            inserted = await self.executor.run(self.store.try_insert, user_id, idempotency_key)
            if inserted:
                return StartProcessing()

            saved_response = await self.executor.run(self.store.get_saved_response, user_id, idempotency_key)
            if saved_response is not None:
                self.logger.info("idempotency_replay", idempotency_key=idempotency_key)
                return ReturnSavedResponse(saved_response)

            if self.wait_timeout is not None and time.monotonic() - started > self.wait_timeout:
                raise UnexpectedError(
                    f"Timed out waiting for the saved response of idempotency key {idempotency_key}."
                )
            await asyncio.sleep(self.poll_interval)

    async def discard(self, user_id: uuid.UUID, idempotency_key: str) -> None:
        await self.executor.run(self.store.discard, user_id, idempotency_key)

    async def save_response(self, user_id: uuid.UUID, idempotency_key: str, response: Response) -> Response:
        return await self.executor.run(self.store.save_response, user_id, idempotency_key, response)
