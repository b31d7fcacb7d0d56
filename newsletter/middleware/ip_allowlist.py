"""
Admin IP Allowlist Middleware
Rejects /admin requests from client addresses not in settings.admin_allowed_ips
"""

from typing import Iterable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse

logger = structlog.get_logger(__name__)


class AdminIpAllowlistMiddleware(BaseHTTPMiddleware):
    """
    Forbid the admin area to unknown clients.

    An empty allowlist disables the check.
    """

    def __init__(self, app, allowed_ips: Iterable[str] = (), path_prefix: str = "/admin"):
        super().__init__(app)
        self.allowed_ips = set(allowed_ips)
        self.path_prefix = path_prefix

    async def dispatch(self, request, call_next):
        if self.allowed_ips and request.url.path.startswith(self.path_prefix):
            client_ip = request.client.host if request.client else None
            if client_ip not in self.allowed_ips:
                logger.warning("admin_access_forbidden", client_ip=client_ip, path=request.url.path)
                return PlainTextResponse("Forbidden", status_code=403)
        return await call_next(request)
