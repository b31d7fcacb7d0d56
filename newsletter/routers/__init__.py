"""
HTTP Routers
"""

from newsletter.routers.health import router as health_router
from newsletter.routers.subscriptions import router as subscriptions_router
from newsletter.routers.login import router as login_router
from newsletter.routers.admin import router as admin_router

__all__ = ["health_router", "subscriptions_router", "login_router", "admin_router"]
