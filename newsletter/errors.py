"""
Error Taxonomy
Exceptions raised by the core and translated to HTTP responses by the app
"""

from typing import Optional


class NewsletterError(Exception):
    """Base class for all application errors."""


class ValidationError(NewsletterError):
    """Bad user input. Surfaced as 400 with the message as body."""


class AuthError(NewsletterError):
    """Base class for credential verification failures."""


class InvalidCredentials(AuthError):
    """Unknown username or wrong password."""

    def __init__(self, message: str = "Invalid credentials."):
        super().__init__(message)


class UnexpectedError(NewsletterError):
    """
    Infrastructure failure (pool exhaustion, transaction failure, executor error).

    Surfaced as an opaque 500; the cause chain is only written to the logs.
    """


class EmailSendError(NewsletterError):
    """The email API rejected the request or could not be reached."""


def format_error_chain(error: BaseException) -> str:
    """
    Render an exception and every exception that caused it.

    Args:
        error: Outermost exception

    Returns:
        Multi-line string, one "Caused by" block per link in the chain
    """
    lines = [f"{type(error).__name__}: {error}"]
    current: Optional[BaseException] = error.__cause__ or error.__context__
    seen = {id(error)}

    while current is not None and id(current) not in seen:
        seen.add(id(current))
        lines.append(f"\nCaused by:\n\t{type(current).__name__}: {current}")
        current = current.__cause__ or current.__context__

    return "\n".join(lines)
