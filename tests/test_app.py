"""
Tests for application wiring and shutdown
"""

from fastapi.testclient import TestClient

from newsletter.main import create_app
from newsletter.services.email_client import EmailClient


def test_owned_email_client_is_closed_on_shutdown(settings, session_factory, executor):
    app = create_app(settings, session_factory=session_factory, executor=executor)
    email_client = app.state.email_sender
    assert isinstance(email_client, EmailClient)

    with TestClient(app) as client:
        assert client.get("/health_check").status_code == 200
        assert not email_client._client.is_closed

    assert email_client._client.is_closed


def test_injected_email_sender_is_left_to_its_owner(app, email_sender):
    with TestClient(app) as client:
        client.get("/health_check")

    assert email_sender.closed is False
