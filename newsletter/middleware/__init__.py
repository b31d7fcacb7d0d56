"""
Middleware Module
ASGI middleware and session helpers for request processing
"""

from newsletter.middleware.correlation_id import CorrelationIdMiddleware
from newsletter.middleware.ip_allowlist import AdminIpAllowlistMiddleware
from newsletter.middleware.session import (
    LoginRequired,
    TypedSession,
    flash,
    pop_flashed_messages,
    require_user_id,
)

__all__ = [
    "CorrelationIdMiddleware",
    "AdminIpAllowlistMiddleware",
    "LoginRequired",
    "TypedSession",
    "flash",
    "pop_flashed_messages",
    "require_user_id",
]
