"""
Shared fixtures: file-backed SQLite database, recording email sender, app and clients
"""

import asyncio
import re
import threading
from dataclasses import dataclass
from typing import List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from newsletter.concurrency import BlockingExecutor
from newsletter.config import Settings
from newsletter.database import Base, create_session_factory
from newsletter.errors import EmailSendError
from newsletter.main import create_app
from newsletter.models import IssueDeliveryQueue, Subscription
from newsletter.services.authentication import CredentialVerifier
from newsletter.services.email_client import EmailSender
from newsletter.worker import ExecutionOutcome

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "everythinghastostartsomewhere"

CONFIRMATION_LINK_RE = re.compile(r"(http://testserver/subscriptions/confirm\?subscription_token=\w+)")


@dataclass
class SentEmail:
    recipient: str
    subject: str
    html_content: str
    text_content: str


class RecordingEmailSender(EmailSender):
    """EmailSender that records every call and can be told to fail."""

    def __init__(self):
        self.sent: List[SentEmail] = []
        self.fail_all = False
        self.fail_for = set()
        self.closed = False
        self._lock = threading.Lock()

    def send_email(self, recipient, subject, html_content, text_content):
        if self.fail_all or recipient in self.fail_for:
            raise EmailSendError(f"Refusing to send to {recipient}")
        with self._lock:
            self.sent.append(SentEmail(recipient, subject, html_content, text_content))

    def sent_to(self, recipient):
        return [email for email in self.sent if email.recipient == recipient]

    def with_subject(self, subject):
        return [email for email in self.sent if email.subject == subject]

    def reset(self):
        with self._lock:
            self.sent.clear()

    def close(self):
        self.closed = True


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        environment="testing",
        database_url=f"sqlite:///{tmp_path / 'newsletter.db'}",
        base_url="http://testserver",
        session_secret="test-session-secret",
        idempotency_poll_interval=0.01,
        idempotency_wait_timeout=10.0,
        worker_empty_queue_backoff=0.2,
        worker_error_backoff=0.05,
    )


@pytest.fixture
def session_factory(settings):
    factory = create_session_factory(settings)
    engine = factory.kw["bind"]
    Base.metadata.create_all(engine)
    yield factory
    engine.dispose()


@pytest.fixture
def executor():
    executor = BlockingExecutor(max_workers=4)
    yield executor
    executor.shutdown()


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def app(settings, session_factory, email_sender, executor):
    return create_app(
        settings,
        session_factory=session_factory,
        email_sender=email_sender,
        executor=executor,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def admin_user_id(session_factory, executor):
    verifier = CredentialVerifier(session_factory, executor)
    return verifier.create_user(ADMIN_USERNAME, ADMIN_PASSWORD)


@pytest.fixture
def admin_client(client, admin_user_id):
    """TestClient holding a logged-in admin session."""
    response = client.post(
        "/login",
        data={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
        follow_redirects=False,
    )
    assert response.status_code == 303
    return client


def subscribe(client, name="le guin", email="ursula_le_guin@gmail.com"):
    return client.post("/subscriptions", data={"name": name, "email": email})


def confirmation_link(email_sender, recipient):
    """Extract the confirmation link from the last welcome email to recipient."""
    email = email_sender.sent_to(recipient)[-1]
    html_link = CONFIRMATION_LINK_RE.search(email.html_content).group(1)
    text_link = CONFIRMATION_LINK_RE.search(email.text_content).group(1)
    assert html_link == text_link
    return text_link


def create_confirmed_subscriber(client, email_sender, name="le guin", email="ursula_le_guin@gmail.com"):
    assert subscribe(client, name=name, email=email).status_code == 200
    assert client.get(confirmation_link(email_sender, email)).status_code == 200


def create_unconfirmed_subscriber(client, name="le guin", email="ursula_le_guin@gmail.com"):
    assert subscribe(client, name=name, email=email).status_code == 200


def publish(client, idempotency_key="k1", title="T", text="t", html="<p>h</p>"):
    return client.post(
        "/admin/newsletter",
        data={"title": title, "text": text, "html": html, "idempotency_key": idempotency_key},
        follow_redirects=False,
    )


def count_rows(session_factory, model):
    with session_factory() as session:
        return session.execute(select(func.count()).select_from(model)).scalar_one()


def get_subscription(session_factory, email):
    with session_factory() as session:
        return session.execute(select(Subscription).where(Subscription.email == email)).scalar_one_or_none()


def pending_tasks(session_factory):
    return count_rows(session_factory, IssueDeliveryQueue)


def drain_queue(app):
    """Run delivery worker iterations until the queue is empty."""
    async def _drain():
        while await app.state.worker.run_once() is ExecutionOutcome.TASK_COMPLETED:
            pass

    asyncio.run(_drain())
