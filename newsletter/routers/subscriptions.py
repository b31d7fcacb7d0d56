"""
Subscriptions Router
Double opt-in: subscribe form and confirmation link
"""

from fastapi import APIRouter, Depends, Form, Query
from fastapi.responses import Response
import structlog

from newsletter.dependencies import get_subscription_service
from newsletter.services.subscription import SubscriptionService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.post("")
async def subscribe(
    name: str = Form(...),
    email: str = Form(...),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Register a pending subscriber and send the confirmation email.

    Returns:
        200 on success, 400 on invalid name/email, 500 on storage or email failure
    """
    await service.create_subscription(name=name, email=email)
    return Response(status_code=200)


@router.get("/confirm")
async def confirm(
    subscription_token: str = Query(...),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Confirm the subscriber owning the token.

    Returns:
        200 on success, 500 if the token is unknown or the update fails
    """
    await service.confirm_subscription(subscription_token)
    logger.info("subscription_confirmed")
    return Response(status_code=200)
