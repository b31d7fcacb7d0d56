"""
Issue Delivery Worker

Drains the issue_delivery_queue table: claims one task per transaction with
FOR UPDATE SKIP LOCKED, sends the email, deletes the task, commits.

Usage:
    python -m newsletter.worker

Normally started by newsletter.main alongside the HTTP server in the same
process. Several worker processes can run against the same database; the
row lock keeps them from claiming the same task.

Delivery policy:
    - Invalid stored address: logged, task dropped
    - Send failure of any kind: logged, task dropped (no retry)
    - Empty queue: sleep worker_empty_queue_backoff (10s)
    - Unexpected error (pool exhausted, DB down): sleep worker_error_backoff (1s), retry
"""

import asyncio
import enum
import uuid

import structlog
from asgi_correlation_id.context import correlation_id
from sqlalchemy.orm import sessionmaker

from newsletter.concurrency import BlockingExecutor
from newsletter.config import Settings
from newsletter.domain import parse_subscriber_email
from newsletter.errors import ValidationError, format_error_chain
from newsletter.services.delivery_queue import DeliveryQueue
from newsletter.services.email_client import EmailSender

logger = structlog.get_logger(__name__)


class ExecutionOutcome(enum.Enum):
    TASK_COMPLETED = "task_completed"
    EMPTY_QUEUE = "empty_queue"


def try_execute_task(
    session_factory: sessionmaker,
    delivery_queue: DeliveryQueue,
    email_sender: EmailSender,
) -> ExecutionOutcome:
    """
    Claim, deliver and delete one task in a single transaction.

    Blocking; run it on the BlockingExecutor.
    """
    with session_factory() as session, session.begin():
        task = delivery_queue.dequeue(session)
        if task is None:
            return ExecutionOutcome.EMPTY_QUEUE

        log = logger.bind(
            newsletter_issue_id=str(task.newsletter_issue_id),
            subscriber_email=task.subscriber_email,
        )

        try:
            recipient = parse_subscriber_email(task.subscriber_email)
        except ValidationError as e:
            log.error(
                "delivery_skipped_invalid_address",
                error_message=str(e),
                error_cause_chain=format_error_chain(e),
            )
        else:
            issue = delivery_queue.get_issue(session, task.newsletter_issue_id)
            try:
                email_sender.send_email(recipient, issue.title, issue.html_content, issue.text_content)
                log.info("issue_delivered")
            except Exception as e:
                # Any sender failure, EmailSendError or not, still removes the task
                log.error(
                    "delivery_failed_skipping",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    error_cause_chain=format_error_chain(e),
                )

        delivery_queue.remove(session, task)

    return ExecutionOutcome.TASK_COMPLETED


class DeliveryWorker:
    """Long-running loop around try_execute_task."""

    def __init__(
        self,
        session_factory: sessionmaker,
        delivery_queue: DeliveryQueue,
        email_sender: EmailSender,
        executor: BlockingExecutor,
        empty_queue_backoff: float = 10.0,
        error_backoff: float = 1.0,
    ):
        self.session_factory = session_factory
        self.delivery_queue = delivery_queue
        self.email_sender = email_sender
        self.executor = executor
        self.empty_queue_backoff = empty_queue_backoff
        self.error_backoff = error_backoff

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def run_once(self) -> ExecutionOutcome:
        """One iteration under a fresh correlation ID."""
        correlation_id.set(uuid.uuid4().hex)
        return await self.executor.run(
            try_execute_task, self.session_factory, self.delivery_queue, self.email_sender
        )

    async def run_until_stopped(self) -> None:
        """Loop forever; only cancellation or process shutdown ends it."""
        logger.info(
            "delivery_worker_started",
            empty_queue_backoff=self.empty_queue_backoff,
            error_backoff=self.error_backoff,
        )
        while True:
            try:
                outcome = await self.run_once()
            except Exception as e:
                logger.error(
                    "delivery_iteration_failed",
                    error_message=str(e),
                    error_cause_chain=format_error_chain(e),
                )
                await self._sleep(self.error_backoff)
                continue

            if outcome is ExecutionOutcome.EMPTY_QUEUE:
                await self._sleep(self.empty_queue_backoff)


def build_worker(settings: Settings, session_factory=None, email_sender=None, executor=None) -> DeliveryWorker:
    """Wire a DeliveryWorker from settings, reusing shared resources when given."""
    from newsletter.database import create_session_factory
    from newsletter.services.delivery_queue import SqlDeliveryQueue
    from newsletter.services.email_client import EmailClient

    return DeliveryWorker(
        session_factory=session_factory or create_session_factory(settings),
        delivery_queue=SqlDeliveryQueue(),
        email_sender=email_sender or EmailClient.from_settings(settings),
        executor=executor or BlockingExecutor(settings.blocking_pool_size),
        empty_queue_backoff=settings.worker_empty_queue_backoff,
        error_backoff=settings.worker_error_backoff,
    )


async def run_worker_until_stopped(settings: Settings) -> None:
    worker = build_worker(settings)
    await worker.run_until_stopped()


def main() -> None:
    from newsletter.config import settings
    from newsletter.services.monitoring import setup_logging

    setup_logging(settings.log_level)
    asyncio.run(run_worker_until_stopped(settings))


if __name__ == "__main__":
    main()
