from __future__ import annotations

import base64
import binascii
import logging
import secrets
import time
from typing import Optional
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from app.core.config import Settings
from app.domain.models import AdminSession, GitHubUser
from app.services.github import ACCEPT_JSON, USER_AGENT

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "web2app_admin_session"
OAUTH_STATE_COOKIE_NAME = "web2app_oauth_state"
SESSION_DURATION_SECONDS = 7 * 24 * 3600
OAUTH_STATE_MAX_AGE = 10 * 60

GITHUB_OAUTH_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
OAUTH_SCOPE = "repo user:email"


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_state() -> str:
    return secrets.token_hex(16)


def build_oauth_url(settings: Settings, state: str) -> str:
    params = {
        "client_id": settings.GITHUB_CLIENT_ID,
        "redirect_uri": settings.oauth_redirect_uri,
        "scope": OAUTH_SCOPE,
        "state": state,
    }
    return f"{GITHUB_OAUTH_URL}?{urlencode(params)}"


def states_match(expected: Optional[str], received: Optional[str]) -> bool:
    if not expected or not received:
        return False
    return secrets.compare_digest(expected, received)


def _http_client(settings: Settings, transport: Optional[httpx.AsyncBaseTransport]) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT, transport=transport)


async def exchange_code_for_token(
    settings: Settings,
    code: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[str]:
    """
    Exchange an OAuth authorization code for an access token.

    Returns None when credentials are not configured, GitHub reports an
    error, or the request fails.
    """
    if not settings.GITHUB_CLIENT_ID or not settings.GITHUB_CLIENT_SECRET:
        logger.error("GitHub OAuth credentials not configured")
        return None

    try:
        async with _http_client(settings, transport) as client:
            response = await client.post(
                GITHUB_TOKEN_URL,
                headers={"Accept": "application/json"},
                json={
                    "client_id": settings.GITHUB_CLIENT_ID,
                    "client_secret": settings.GITHUB_CLIENT_SECRET,
                    "code": code,
                },
            )
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Failed to exchange code for token: {e}")
        return None

    if data.get("error"):
        logger.error(f"OAuth error: {data.get('error_description') or data['error']}")
        return None
    return data.get("access_token")


async def get_github_user(
    settings: Settings,
    access_token: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[GitHubUser]:
    try:
        async with _http_client(settings, transport) as client:
            response = await client.get(
                f"{settings.GITHUB_API_URL.rstrip('/')}/user",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": ACCEPT_JSON,
                    "User-Agent": USER_AGENT,
                },
            )
        if not response.is_success:
            logger.error(f"Failed to fetch GitHub user: {response.status_code}")
            return None
        return GitHubUser.model_validate(response.json())
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Failed to fetch GitHub user: {e}")
        return None


async def check_repo_access(
    settings: Settings,
    access_token: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    """
    True when the token's user can push to the templates repository.
    """
    url = f"{settings.GITHUB_API_URL.rstrip('/')}/repos/{settings.GITHUB_ORG}/{settings.GITHUB_REPO}"
    try:
        async with _http_client(settings, transport) as client:
            response = await client.get(
                url,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": ACCEPT_JSON,
                    "User-Agent": USER_AGENT,
                },
            )
        if not response.is_success:
            return False
        permissions = response.json().get("permissions") or {}
    except (httpx.HTTPError, ValueError, AttributeError) as e:
        logger.error(f"Failed to check repo access: {e}")
        return False
    return permissions.get("push") is True


# ---------------------------------------------------------------------------
# Session cookie
# ---------------------------------------------------------------------------

# The cookie value is plain base64 JSON, not signed or encrypted; it carries
# the user's GitHub token and relies on httpOnly/secure cookie flags.


def encode_session(session: AdminSession) -> str:
    payload = session.model_dump_json(by_alias=True)
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode_session(encoded: str) -> Optional[AdminSession]:
    try:
        payload = base64.b64decode(encoded.encode("ascii"), validate=True)
        return AdminSession.model_validate_json(payload)
    except (binascii.Error, UnicodeError, ValidationError, ValueError):
        return None


def create_session(user: GitHubUser, access_token: str, now_ms: Optional[int] = None) -> AdminSession:
    now_ms = _now_ms() if now_ms is None else now_ms
    return AdminSession(
        user=user,
        access_token=access_token,
        expires_at=now_ms + SESSION_DURATION_SECONDS * 1000,
    )


def session_from_cookie(value: Optional[str], now_ms: Optional[int] = None) -> Optional[AdminSession]:
    """
    Decode a session cookie value; None when absent, malformed, or expired.
    """
    if not value:
        return None
    session = decode_session(value)
    if session is None:
        return None
    now_ms = _now_ms() if now_ms is None else now_ms
    if session.expires_at < now_ms:
        return None
    return session
