"""
Authentication API routes for the GitHub OAuth admin login.

This module provides FastAPI routes for:
- Starting the OAuth flow (redirect to GitHub's authorize page)
- Handling the OAuth callback (code exchange, access check, session cookie)
- Logging out
- Reporting the current session to the admin pages

The session lives entirely in an HTTP-only cookie; there is no server-side
session store.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

import httpx
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from app.core.config import Settings, get_settings
from app.core.dependencies import get_current_session, get_http_transport
from app.domain.models import AdminSession
from app.services.authentication import (
    OAUTH_STATE_COOKIE_NAME,
    OAUTH_STATE_MAX_AGE,
    SESSION_COOKIE_NAME,
    SESSION_DURATION_SECONDS,
    build_oauth_url,
    check_repo_access,
    create_session,
    encode_session,
    exchange_code_for_token,
    generate_state,
    get_github_user,
    states_match,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin")


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


def _login_error(settings: Settings, message: str) -> RedirectResponse:
    """
    Send the browser back to the login page with an error message.
    """
    response = _redirect(f"{settings.base_url}/admin?error={quote(message)}")
    response.delete_cookie(OAUTH_STATE_COOKIE_NAME, path="/")
    return response


@router.get("/login")
async def login(settings: Settings = Depends(get_settings)) -> RedirectResponse:
    """
    Redirect to GitHub's OAuth authorize page.

    A random state value is stored in a short-lived cookie and checked again
    in the callback.
    """
    state = generate_state()
    response = _redirect(build_oauth_url(settings, state))
    response.set_cookie(
        OAUTH_STATE_COOKIE_NAME,
        state,
        max_age=OAUTH_STATE_MAX_AGE,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )
    return response


@router.get("/callback")
async def callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
) -> RedirectResponse:
    """
    Complete the OAuth flow.

    Behavior:
        - Exchanges the authorization code for an access token
        - Loads the GitHub user and verifies push access to the templates repo
        - Sets the session cookie (7 days) and redirects to the dashboard
        - Any failure redirects to /admin?error=<message>
    """
    if error:
        return _login_error(settings, error)

    if not code:
        return _login_error(settings, "No authorization code received")

    if not states_match(request.cookies.get(OAUTH_STATE_COOKIE_NAME), state):
        logger.warning("OAuth callback with missing or mismatched state")
        return _login_error(settings, "Invalid OAuth state")

    access_token = await exchange_code_for_token(settings, code, transport)
    if not access_token:
        return _login_error(settings, "Failed to authenticate with GitHub")

    user = await get_github_user(settings, access_token, transport)
    if user is None:
        return _login_error(settings, "Failed to get user information")

    if not await check_repo_access(settings, access_token, transport):
        logger.info(f"Denied admin login for {user.login}: no push access")
        return _login_error(settings, "You do not have write access to the templates repository")

    session = create_session(user, access_token)
    response = _redirect(f"{settings.base_url}/admin/dashboard")
    response.delete_cookie(OAUTH_STATE_COOKIE_NAME, path="/")
    response.set_cookie(
        SESSION_COOKIE_NAME,
        encode_session(session),
        max_age=SESSION_DURATION_SECONDS,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )
    logger.info(f"Admin login: {user.login}")
    return response


@router.api_route("/logout", methods=["GET", "POST"])
async def logout(settings: Settings = Depends(get_settings)) -> RedirectResponse:
    """
    Clear the session cookie and return to the login page.
    """
    response = _redirect(f"{settings.base_url}/admin")
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return response


@router.get("/session")
async def current_session(
    session: Optional[AdminSession] = Depends(get_current_session),
) -> dict:
    if session is None:
        return {"authenticated": False}
    return {"authenticated": True, "user": session.user.model_dump()}
