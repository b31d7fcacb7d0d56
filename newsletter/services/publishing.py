"""
Publish Orchestrator
Idempotent "publish newsletter issue" operation
"""

from typing import Tuple
import uuid

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from starlette.responses import RedirectResponse, Response

from newsletter.concurrency import BlockingExecutor
from newsletter.domain import parse_idempotency_key
from newsletter.errors import UnexpectedError
from newsletter.models import NewsletterIssue
from newsletter.services.delivery_queue import DeliveryQueue
from newsletter.services.idempotency import IdempotencyService, ReturnSavedResponse

logger = structlog.get_logger(__name__)

NEWSLETTER_FORM_PATH = "/admin/newsletter"


class NewsletterPublisher:
    """
    Records a newsletter issue and fans it out to the delivery queue.

    Publish flow:
    1. Idempotency gate (one winner per user + key)
    2. Issue insert + enqueue in one transaction
    3. Redirect response saved against the key and returned

    Replayed attempts get the saved response back and touch nothing else.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        delivery_queue: DeliveryQueue,
        idempotency: IdempotencyService,
        executor: BlockingExecutor,
    ):
        self.session_factory = session_factory
        self.delivery_queue = delivery_queue
        self.idempotency = idempotency
        self.executor = executor
        self.logger = logger.bind(service="publishing")

    def insert_issue_and_enqueue_tasks(self, title: str, text: str, html: str) -> Tuple[uuid.UUID, int]:
        """
        Insert the issue and one delivery task per confirmed subscriber atomically.

        Returns:
            (newsletter_issue_id, number of tasks enqueued)
        """
        newsletter_issue_id = uuid.uuid4()
        try:
            with self.session_factory() as session, session.begin():
                session.add(NewsletterIssue(
                    newsletter_issue_id=newsletter_issue_id,
                    title=title,
                    text_content=text,
                    html_content=html,
                ))
                session.flush()
                enqueued = self.delivery_queue.enqueue_for_confirmed_subscribers(session, newsletter_issue_id)
        except SQLAlchemyError as e:
            raise UnexpectedError("Failed to store newsletter issue and enqueue delivery tasks.") from e

        return newsletter_issue_id, enqueued

    async def publish(
        self,
        title: str,
        text: str,
        html: str,
        idempotency_key: str,
        user_id: uuid.UUID,
    ) -> Response:
        """
        Publish an issue, or replay the response of an earlier attempt with the same key.

        Raises:
            ValidationError: empty or oversized idempotency key
            UnexpectedError: storage failure. If the issue insert failed the key is
                released and a retry starts over; if only saving the response
                failed the key stays claimed and is not published twice
        """
        idempotency_key = parse_idempotency_key(idempotency_key)
        log = self.logger.bind(user_id=str(user_id), idempotency_key=idempotency_key)

        next_action = await self.idempotency.try_processing(user_id, idempotency_key)
        if isinstance(next_action, ReturnSavedResponse):
            log.info("publish_replayed")
            return next_action.response

        try:
            newsletter_issue_id, enqueued = await self.executor.run(
                self.insert_issue_and_enqueue_tasks, title, text, html
            )
        except Exception:
            # The issue transaction rolled back: free the key so a retry starts over
            log.warning("publish_failed_releasing_key")
            await self.idempotency.discard(user_id, idempotency_key)
            raise
        log.info("newsletter_issue_published", newsletter_issue_id=str(newsletter_issue_id), enqueued=enqueued)

        response = RedirectResponse(NEWSLETTER_FORM_PATH, status_code=303)
        return await self.idempotency.save_response(user_id, idempotency_key, response)
