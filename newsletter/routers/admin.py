"""
Admin Router
Session-gated dashboard, newsletter publishing and account management
"""

import uuid

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
import structlog

from newsletter.dependencies import get_credential_verifier, get_publisher
from newsletter.errors import InvalidCredentials
from newsletter.middleware.session import TypedSession, flash, pop_flashed_messages, require_user_id
from newsletter.routers.pages import change_password_page, dashboard_page, newsletter_form_page
from newsletter.services.authentication import CredentialVerifier, Credentials
from newsletter.services.publishing import NewsletterPublisher

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

PUBLISH_SUCCESS_MESSAGE = "Successfully sent newsletter."


@router.get("/dashboard", response_class=HTMLResponse)
async def admin_dashboard(
    user_id: uuid.UUID = Depends(require_user_id),
    verifier: CredentialVerifier = Depends(get_credential_verifier),
):
    username = await verifier.get_username(user_id)
    return HTMLResponse(dashboard_page(username))


@router.get("/newsletter", response_class=HTMLResponse)
async def newsletter_form(request: Request, user_id: uuid.UUID = Depends(require_user_id)):
    """Publish form carrying a fresh idempotency key."""
    return HTMLResponse(newsletter_form_page(pop_flashed_messages(request), str(uuid.uuid4())))


@router.post("/newsletter")
async def publish_newsletter(
    request: Request,
    title: str = Form(...),
    text: str = Form(...),
    html: str = Form(...),
    idempotency_key: str = Form(...),
    user_id: uuid.UUID = Depends(require_user_id),
    publisher: NewsletterPublisher = Depends(get_publisher),
):
    """
    Publish a newsletter issue to all confirmed subscribers.

    Retrying with the same idempotency_key returns the first attempt's
    response (303 to /admin/newsletter) without publishing again.
    """
    response = await publisher.publish(
        title=title,
        text=text,
        html=html,
        idempotency_key=idempotency_key,
        user_id=user_id,
    )
    # Set on first attempts and replays alike; the session cookie is not part of the saved response
    flash(request, PUBLISH_SUCCESS_MESSAGE)
    return response


@router.get("/password", response_class=HTMLResponse)
async def change_password_form(request: Request, user_id: uuid.UUID = Depends(require_user_id)):
    return HTMLResponse(change_password_page(pop_flashed_messages(request)))


@router.post("/password")
async def change_password(
    request: Request,
    current_password: str = Form(...),
    new_password: str = Form(...),
    new_password_check: str = Form(...),
    user_id: uuid.UUID = Depends(require_user_id),
    verifier: CredentialVerifier = Depends(get_credential_verifier),
):
    redirect = RedirectResponse("/admin/password", status_code=303)

    if new_password != new_password_check:
        flash(request, "You entered two different new passwords - the field values must match.", level="error")
        return redirect

    username = await verifier.get_username(user_id)
    try:
        await verifier.validate_credentials(Credentials(username=username, password=current_password))
    except InvalidCredentials:
        flash(request, "The current password is incorrect.", level="error")
        return redirect

    await verifier.change_password(user_id, new_password)
    flash(request, "Your password has been changed.")
    return redirect


@router.post("/logout")
async def log_out(request: Request, user_id: uuid.UUID = Depends(require_user_id)):
    TypedSession(request).log_out()
    flash(request, "You have successfully logged out.")
    logger.info("logged_out", user_id=str(user_id))
    return RedirectResponse("/login", status_code=303)
