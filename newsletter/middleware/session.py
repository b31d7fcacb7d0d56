"""
Session State
Typed access to the signed session cookie: logged-in user id and flash messages
"""

from typing import List, Optional
import uuid

from fastapi import Request

USER_ID_KEY = "user_id"
FLASH_KEY = "_flash_messages"


class LoginRequired(Exception):
    """Raised by require_user_id when no user is logged in."""


class TypedSession:
    """Wrapper around request.session with the keys this app uses."""

    def __init__(self, request: Request):
        self._session = request.session

    def renew(self) -> None:
        """Drop everything but pending flash messages (new login, new session state)."""
        flashes = self._session.get(FLASH_KEY)
        self._session.clear()
        if flashes:
            self._session[FLASH_KEY] = flashes

    def insert_user_id(self, user_id: uuid.UUID) -> None:
        self._session[USER_ID_KEY] = str(user_id)

    def get_user_id(self) -> Optional[uuid.UUID]:
        value = self._session.get(USER_ID_KEY)
        return uuid.UUID(value) if value else None

    def log_out(self) -> None:
        self._session.clear()


def flash(request: Request, message: str, level: str = "info") -> None:
    """Queue a one-shot message for the next rendered page."""
    messages = list(request.session.get(FLASH_KEY, []))
    messages.append({"level": level, "message": message})
    request.session[FLASH_KEY] = messages


def pop_flashed_messages(request: Request) -> List[dict]:
    """Return and clear queued flash messages."""
    return request.session.pop(FLASH_KEY, [])


def require_user_id(request: Request) -> uuid.UUID:
    """
    FastAPI dependency for session-gated admin routes.

    Raises:
        LoginRequired: no user id in the session (handled as a redirect to /login)
    """
    user_id = TypedSession(request).get_user_id()
    if user_id is None:
        raise LoginRequired()
    return user_id
