"""
Public read-only endpoints used by the desktop app.

These proxy the (private) templates repository with the server's own token
and set CDN cache headers; nothing here requires an admin session.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response

from app.core.dependencies import get_public_github
from app.core.exceptions import NotFound, StudioError, ValidationFailed
from app.domain.catalog_utils import icon_content_type, is_repo_subpath, today_iso
from app.domain.models import CategoryTemplatesRequest
from app.services.github import MANIFEST_PATH, GitHubContentsClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

CATEGORIES_API_VERSION = "2.0.0"
CATEGORIES_CACHE_CONTROL = "public, s-maxage=300, stale-while-revalidate=3600"
ICON_CACHE_CONTROL = "public, max-age=3600, s-maxage=3600"


def _server_error(message: str) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": message})


@router.get("/categories")
async def public_categories(github: GitHubContentsClient = Depends(get_public_github)):
    """
    All categories with their default configuration, for syncing category
    defaults into the desktop app.
    """
    try:
        categories = await github.fetch_all_categories()
    except Exception:
        logger.exception("Failed to fetch categories")
        return _server_error("Failed to fetch categories")

    return JSONResponse(
        content={
            "version": CATEGORIES_API_VERSION,
            "lastUpdated": today_iso(),
            "categories": [c.to_document() for c in categories],
        },
        headers={"Cache-Control": CATEGORIES_CACHE_CONTROL},
    )


@router.get("/templates")
async def public_templates(
    path: Optional[str] = None,
    github: GitHubContentsClient = Depends(get_public_github),
):
    """
    Return a template file when ``path`` names a ``.json`` file under
    ``templates/``, otherwise the manifest. Documents are passed through
    unchanged.
    """
    if path and path.endswith(".json"):
        if not is_repo_subpath(path, "templates"):
            raise NotFound("Template not found")
        target, not_found = path, "Template not found"
    else:
        target, not_found = MANIFEST_PATH, "Manifest not found"

    try:
        document = await github.get_json(target)
    except Exception:
        logger.exception("Error fetching templates")
        return _server_error("Failed to fetch templates")

    if document is None:
        raise NotFound(not_found)
    return document


@router.post("/templates")
async def public_category_templates(
    body: CategoryTemplatesRequest,
    github: GitHubContentsClient = Depends(get_public_github),
):
    """
    Return every template document in one category.
    """
    if not body.category:
        raise ValidationFailed("Category is required")
    if not is_repo_subpath(f"templates/{body.category}", "templates"):
        raise NotFound("Category not found")

    try:
        entries = await github.list_directory(f"templates/{body.category}")
        if entries is None:
            raise NotFound("Category not found")

        templates = []
        for entry in entries:
            if not entry.name.endswith(".json"):
                continue
            document = await github.get_json(entry.path)
            if document is not None:
                templates.append(document)
    except StudioError:
        raise
    except Exception:
        logger.exception("Error fetching category templates")
        return _server_error("Failed to fetch templates")

    return {"templates": templates}


@router.get("/icons/{icon_path:path}")
async def public_icon(
    icon_path: str,
    github: GitHubContentsClient = Depends(get_public_github),
):
    """
    Serve an icon image stored under ``icons/`` in the repository.
    """
    if not is_repo_subpath(icon_path, "icons"):
        raise NotFound("Icon not found")

    try:
        content = await github.get_raw(icon_path)
    except Exception:
        logger.exception("Error fetching icon")
        return _server_error("Failed to fetch icon")

    if content is None:
        raise NotFound("Icon not found")

    return Response(
        content=content,
        media_type=icon_content_type(icon_path),
        headers={"Cache-Control": ICON_CACHE_CONTROL},
    )
