"""
Admin API endpoints for managing templates, categories, and icons.

Every route requires a valid admin session (401 otherwise) and acts on the
backing GitHub repository with the signed-in admin's own token, so GitHub's
permission checks apply to every write.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.core.dependencies import get_admin_github, get_icon_fetcher, require_admin_session
from app.core.exceptions import GitHubError, NotFound, StudioError, ValidationFailed
from app.domain.catalog_utils import (
    CATEGORY_REQUIRED_FIELDS,
    TEMPLATE_REQUIRED_FIELDS,
    missing_fields,
    normalize_template_id,
    required_fields_message,
    today_iso,
)
from app.domain.models import (
    BatchIconRequest,
    Category,
    IconFetchRequest,
    IconUploadRequest,
    Template,
)
from app.services import icons
from app.services.github import GitHubContentsClient, icon_path
from app.services.icons import IconFetcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin_session)])


def _server_error(message: str) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": message})


def _validate_template(template: Template) -> None:
    if missing_fields(template, TEMPLATE_REQUIRED_FIELDS):
        raise ValidationFailed(required_fields_message(TEMPLATE_REQUIRED_FIELDS))


def _require_category_param(category: Optional[str]) -> str:
    if not category:
        raise ValidationFailed("Category parameter is required")
    return category


async def _refresh_counts(github: GitHubContentsClient) -> None:
    # Count refresh is advisory; the template write already succeeded.
    try:
        await github.update_template_counts()
    except GitHubError as e:
        logger.warning(f"Template count update failed: {e.message}")


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


@router.get("/templates")
async def list_templates(github: GitHubContentsClient = Depends(get_admin_github)):
    """
    Return every template plus the manifest's categories.
    """
    try:
        templates = await github.fetch_all_templates()
        manifest = await github.fetch_manifest()
    except StudioError:
        raise
    except Exception:
        logger.exception("Failed to fetch templates")
        return _server_error("Failed to fetch templates")

    return {
        "templates": [t.to_document() for t in templates],
        "categories": [c.to_document() for c in (manifest.categories if manifest else [])],
    }


@router.post("/templates")
async def create_template(
    template: Template,
    github: GitHubContentsClient = Depends(get_admin_github),
):
    """
    Create a template file and refresh the manifest's template counts.

    The id is normalized (lowercase, whitespace to dashes) and
    ``metadata.lastUpdated`` is set to today.
    """
    template.id = normalize_template_id(template.id)
    _validate_template(template)
    template.metadata.last_updated = today_iso()

    try:
        await github.save_template(template, is_new=True)
        await _refresh_counts(github)
    except StudioError:
        raise
    except Exception:
        logger.exception("Failed to create template")
        return _server_error("Failed to create template")

    return {"success": True, "template": template.to_document()}


@router.put("/templates")
async def update_template(
    template: Template,
    github: GitHubContentsClient = Depends(get_admin_github),
):
    _validate_template(template)
    template.metadata.last_updated = today_iso()

    try:
        await github.save_template(template, is_new=False)
    except StudioError:
        raise
    except Exception:
        logger.exception("Failed to update template")
        return _server_error("Failed to update template")

    return {"success": True, "template": template.to_document()}


@router.get("/templates/{template_id}")
async def get_template(
    template_id: str,
    category: Optional[str] = None,
    github: GitHubContentsClient = Depends(get_admin_github),
):
    category = _require_category_param(category)
    template = await github.fetch_template(template_id, category)
    if template is None:
        raise NotFound("Template not found")
    return {"template": template.to_document()}


@router.delete("/templates/{template_id}")
async def delete_template(
    template_id: str,
    category: Optional[str] = None,
    github: GitHubContentsClient = Depends(get_admin_github),
):
    """
    Delete a template (and its uploaded icon, if it has one), then refresh
    the manifest's template counts.
    """
    category = _require_category_param(category)

    try:
        existing = await github.fetch_template(template_id, category)
        await github.delete_template(template_id, category)

        if existing is not None and existing.icon_url == icon_path(template_id):
            try:
                await github.delete_icon(template_id)
            except GitHubError as e:
                logger.warning(f"Could not delete icon for {template_id}: {e.message}")

        await _refresh_counts(github)
    except StudioError:
        raise
    except Exception:
        logger.exception("Failed to delete template")
        return _server_error("Failed to delete template")

    return {"success": True}


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


@router.get("/categories")
async def list_categories(github: GitHubContentsClient = Depends(get_admin_github)):
    try:
        categories = await github.fetch_all_categories()
    except Exception:
        logger.exception("Failed to fetch categories")
        return _server_error("Failed to fetch categories")
    return {"categories": [c.to_document() for c in categories]}


@router.get("/categories/{category_id}")
async def get_category(
    category_id: str,
    github: GitHubContentsClient = Depends(get_admin_github),
):
    category = await github.fetch_category(category_id)
    if category is None:
        raise NotFound("Category not found")
    return {"category": category.to_document()}


@router.put("/categories/{category_id}")
async def update_category(
    category_id: str,
    category: Category,
    github: GitHubContentsClient = Depends(get_admin_github),
):
    """
    Replace a category's fields and default configuration in the manifest.
    The stored template count is kept.
    """
    if category.id != category_id:
        raise ValidationFailed("Category ID mismatch")
    if missing_fields(category, CATEGORY_REQUIRED_FIELDS):
        raise ValidationFailed(required_fields_message(CATEGORY_REQUIRED_FIELDS))

    try:
        saved = await github.save_category(category)
    except StudioError:
        raise
    except Exception:
        logger.exception("Failed to update category")
        return _server_error("Failed to update category")

    return {"success": True, "category": saved.to_document()}


# ---------------------------------------------------------------------------
# Icons
# ---------------------------------------------------------------------------


@router.post("/icon")
async def fetch_icon(
    body: IconFetchRequest,
    fetcher: IconFetcher = Depends(get_icon_fetcher),
):
    """
    Look up the best available icon for a website and return it as a data URL.
    """
    if not body.url:
        raise ValidationFailed("URL is required")

    result = await fetcher.fetch(body.url)
    if result.error == "Invalid URL":
        raise ValidationFailed("Invalid URL")
    if not result.success:
        return JSONResponse(
            status_code=404,
            content={"success": False, "error": "No icon found for this website"},
        )
    return {"success": True, "data": result.data, "source": result.source}


@router.post("/icon/upload")
async def upload_icon(
    body: IconUploadRequest,
    github: GitHubContentsClient = Depends(get_admin_github),
):
    if not body.template_id:
        raise ValidationFailed("Template ID is required")
    if not body.image_data:
        raise ValidationFailed("Image data is required")

    path = await github.upload_icon(body.template_id, body.image_data)
    return {"success": True, "iconUrl": path}


@router.post("/icon/batch")
async def batch_icons(
    request: Request,
    github: GitHubContentsClient = Depends(get_admin_github),
    fetcher: IconFetcher = Depends(get_icon_fetcher),
):
    """
    Fetch and upload icons for all templates without one.

    The body is optional; ``{"dryRun": true}`` reports what would be uploaded
    without writing anything. A missing or unparseable body means a real run.
    """
    try:
        options = BatchIconRequest.model_validate(await request.json())
    except (ValueError, ValidationError):
        options = BatchIconRequest()

    try:
        summary, results = await icons.run_batch(github, fetcher, dry_run=options.dry_run)
    except StudioError:
        raise
    except Exception:
        logger.exception("Batch icon fetch error")
        return _server_error("Failed to process batch icon fetch")

    return {
        "success": True,
        "summary": summary.model_dump(),
        "results": [r.model_dump(by_alias=True) for r in results],
    }
