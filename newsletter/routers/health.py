"""
Health Check Router
"""

from fastapi import APIRouter
from fastapi.responses import Response

router = APIRouter(tags=["health"])


@router.get("/health_check")
async def health_check():
    """Liveness probe: 200 with an empty body."""
    return Response(status_code=200)
