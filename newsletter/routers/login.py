"""
Login Router
"""

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
import structlog

from newsletter.dependencies import get_credential_verifier
from newsletter.errors import InvalidCredentials
from newsletter.middleware.session import TypedSession, flash, pop_flashed_messages
from newsletter.routers.pages import login_page
from newsletter.services.authentication import CredentialVerifier, Credentials

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["auth"])


@router.get("/login", response_class=HTMLResponse)
async def login_form(request: Request):
    return HTMLResponse(login_page(pop_flashed_messages(request)))


@router.post("/login")
async def login(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
    verifier: CredentialVerifier = Depends(get_credential_verifier),
):
    """
    Start an admin session.

    Returns:
        303 to /admin/dashboard on success, 303 back to /login with a flash message otherwise
    """
    log = logger.bind(username=username)
    try:
        user_id = await verifier.validate_credentials(Credentials(username=username, password=password))
    except InvalidCredentials as e:
        log.info("login_failed", reason=str(e))
        flash(request, "Authentication failed", level="error")
        return RedirectResponse("/login", status_code=303)

    session = TypedSession(request)
    session.renew()
    session.insert_user_id(user_id)
    log.info("login_succeeded", user_id=str(user_id))
    return RedirectResponse("/admin/dashboard", status_code=303)
