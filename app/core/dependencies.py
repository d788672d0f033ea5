from __future__ import annotations

import logging
from typing import AsyncIterator, Optional

import httpx
from fastapi import Depends, HTTPException, Request, status

from app.core.config import Settings, get_settings
from app.core.exceptions import ConfigurationError, NotAuthenticated
from app.domain.models import AdminSession
from app.services.authentication import SESSION_COOKIE_NAME, session_from_cookie
from app.services.github import GitHubContentsClient
from app.services.icons import IconFetcher

logger = logging.getLogger(__name__)


def get_http_transport() -> Optional[httpx.AsyncBaseTransport]:
    """
    Transport for outgoing HTTP clients. None selects httpx's default network
    transport; tests override this dependency with a mock transport.
    """
    return None


def get_current_session(request: Request) -> Optional[AdminSession]:
    return session_from_cookie(request.cookies.get(SESSION_COOKIE_NAME))


async def require_admin_session(
    session: Optional[AdminSession] = Depends(get_current_session),
) -> AdminSession:
    """
    Require a valid admin session for API calls (401 otherwise).
    """
    if session is None:
        raise NotAuthenticated()
    return session


async def require_admin_page_session(
    session: Optional[AdminSession] = Depends(get_current_session),
) -> AdminSession:
    """
    Require a valid admin session for HTML pages; redirect to the login page
    otherwise.
    """
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_307_TEMPORARY_REDIRECT,
            detail="Not authenticated",
            headers={"Location": "/admin"},
        )
    return session


async def get_admin_github(
    session: AdminSession = Depends(require_admin_session),
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
) -> AsyncIterator[GitHubContentsClient]:
    """
    GitHub client acting with the signed-in admin's token.
    """
    async with GitHubContentsClient.from_settings(settings, session.access_token, transport) as client:
        yield client


async def get_public_github(
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
) -> AsyncIterator[GitHubContentsClient]:
    """
    GitHub client acting with the server's read token for public endpoints.
    """
    if not settings.GITHUB_TEMPLATES_TOKEN:
        logger.error("GITHUB_TEMPLATES_TOKEN is not configured")
        raise ConfigurationError()
    async with GitHubContentsClient.from_settings(
        settings, settings.GITHUB_TEMPLATES_TOKEN, transport
    ) as client:
        yield client


async def get_icon_fetcher(
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
) -> AsyncIterator[IconFetcher]:
    async with IconFetcher(timeout=settings.HTTP_TIMEOUT, transport=transport) as fetcher:
        yield fetcher


async def get_admin_page_github(
    session: AdminSession = Depends(require_admin_page_session),
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
) -> AsyncIterator[GitHubContentsClient]:
    async with GitHubContentsClient.from_settings(settings, session.access_token, transport) as client:
        yield client
