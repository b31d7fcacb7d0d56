"""
Email API Client

Synchronous client for a Postmark-compatible email API.
Called from the blocking executor by the subscribe flow and by the delivery worker.
"""

from abc import ABC, abstractmethod

import httpx
import structlog

from newsletter.config import Settings
from newsletter.errors import EmailSendError

logger = structlog.get_logger(__name__)


class EmailSender(ABC):
    """Capability to send one email to one recipient."""

    @abstractmethod
    def send_email(self, recipient: str, subject: str, html_content: str, text_content: str) -> None:
        """
        Send an email.

        Raises:
            EmailSendError: if the email could not be handed to the provider
        """

    def close(self) -> None:
        """Release transport resources (connection pools)."""


class EmailClient(EmailSender):
    """
    Email sender backed by the provider's HTTP API.

    API: POST {base_url}/email with a JSON body
    {From, To, Subject, HtmlBody, TextBody} and the server token header.
    """

    def __init__(
        self,
        base_url: str,
        sender: str,
        authorization_token: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport = None,
    ):
        """
        Args:
            base_url: Provider API root, without trailing slash
            sender: From address
            authorization_token: Value of the X-Postmark-Server-Token header
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.sender = sender
        self._client = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={"X-Postmark-Server-Token": authorization_token},
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailClient":
        return cls(
            base_url=settings.email_base_url,
            sender=settings.email_sender,
            authorization_token=settings.email_authorization_token,
            timeout=settings.email_timeout_seconds,
        )

    def send_email(self, recipient: str, subject: str, html_content: str, text_content: str) -> None:
        try:
            response = self._client.post(
                f"{self.base_url}/email",
                json={
                    "From": self.sender,
                    "To": recipient,
                    "Subject": subject,
                    "HtmlBody": html_content,
                    "TextBody": text_content,
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise EmailSendError(
                f"Email API returned {e.response.status_code} for {recipient}"
            ) from e
        except httpx.HTTPError as e:
            raise EmailSendError(f"Email API request failed for {recipient}") from e

        logger.info("email_sent", recipient=recipient, subject=subject)

    def close(self) -> None:
        self._client.close()
