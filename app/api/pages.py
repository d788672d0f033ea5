"""
Server-rendered admin pages.

Pages render data loaded from the backing repository; edits are submitted
from the browser to the JSON endpoints in ``app.api.admin``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from app.core.dependencies import (
    get_admin_page_github,
    get_current_session,
    require_admin_page_session,
)
from app.core.exceptions import NotFound
from app.domain.catalog_utils import filter_templates, template_stats
from app.domain.models import (
    CATEGORIES,
    CATEGORY_COLORS,
    DEFAULT_CATEGORY_COLOR,
    ICON_SHAPE_RADIUS,
    WINDOW_PRESETS,
    AdminSession,
    Category,
    Template,
)
from app.services.github import GitHubContentsClient, icon_proxy_url

router = APIRouter()

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parents[1] / "templates"))
templates.env.globals.update(
    category_colors=CATEGORY_COLORS,
    default_color=DEFAULT_CATEGORY_COLOR,
    icon_proxy_url=icon_proxy_url,
    icon_shape_radius=ICON_SHAPE_RADIUS,
)

TEMPLATE_FORM_OPTIONS = {
    "window_styles": ["normal", "menuBar", "sidebar"],
    "link_behaviors": ["sameWindow", "newTab", "systemBrowser"],
    "cookie_policies": ["persistent", "session"],
    "user_agents": ["default", "chrome", "safari"],
    "ad_blocking_options": ["disabled", "basic", "advanced"],
    "icon_shapes": list(ICON_SHAPE_RADIUS),
}

CATEGORY_FORM_OPTIONS = {
    "window_styles": ["normal", "menuBar", "sidebar"],
    "window_presets": WINDOW_PRESETS,
    "link_behaviors": ["sameWindow", "newTab", "systemBrowser"],
    "user_agents": ["default", "chrome", "safari", "firefox", "mobileSafari", "custom"],
}


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


@router.get("/", include_in_schema=False)
async def index() -> RedirectResponse:
    return _redirect("/admin")


@router.get("/admin", response_class=HTMLResponse)
async def login_page(
    request: Request,
    error: Optional[str] = None,
    session: Optional[AdminSession] = Depends(get_current_session),
):
    """
    Sign-in page. Already signed-in admins go straight to the dashboard.
    """
    if session is not None:
        return _redirect("/admin/dashboard")
    return templates.TemplateResponse(request, "login.html", {"error": error})


@router.get("/admin/dashboard", response_class=HTMLResponse)
async def dashboard_page(
    request: Request,
    q: str = "",
    category: str = "all",
    session: AdminSession = Depends(require_admin_page_session),
    github: GitHubContentsClient = Depends(get_admin_page_github),
):
    all_templates = await github.fetch_all_templates()
    manifest = await github.fetch_manifest()
    categories = manifest.categories if manifest else []

    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "user": session.user,
            "templates": filter_templates(all_templates, q, category),
            "categories": categories,
            "stats": template_stats(all_templates, categories),
            "query": q,
            "category_filter": category,
            "has_filter": bool(q) or category not in ("", "all"),
        },
    )


@router.get("/admin/templates/new", response_class=HTMLResponse)
async def new_template_page(
    request: Request,
    session: AdminSession = Depends(require_admin_page_session),
):
    return templates.TemplateResponse(
        request,
        "template_form.html",
        {
            "user": session.user,
            "template": Template(category="productivity"),
            "is_editing": False,
            "categories": CATEGORIES,
            **TEMPLATE_FORM_OPTIONS,
        },
    )


@router.get("/admin/templates/{template_id}", response_class=HTMLResponse)
async def edit_template_page(
    request: Request,
    template_id: str,
    category: str = "",
    session: AdminSession = Depends(require_admin_page_session),
    github: GitHubContentsClient = Depends(get_admin_page_github),
):
    template = await github.fetch_template(template_id, category) if category else None
    if template is None:
        raise NotFound("Template not found")

    return templates.TemplateResponse(
        request,
        "template_form.html",
        {
            "user": session.user,
            "template": template,
            "is_editing": True,
            "categories": CATEGORIES,
            **TEMPLATE_FORM_OPTIONS,
        },
    )


@router.get("/admin/categories", response_class=HTMLResponse)
async def categories_page(
    request: Request,
    session: AdminSession = Depends(require_admin_page_session),
    github: GitHubContentsClient = Depends(get_admin_page_github),
):
    manifest = await github.fetch_manifest()
    categories = manifest.categories if manifest else []
    return templates.TemplateResponse(
        request,
        "categories.html",
        {"user": session.user, "categories": categories},
    )


@router.get("/admin/categories/{category_id}", response_class=HTMLResponse)
async def edit_category_page(
    request: Request,
    category_id: str,
    session: AdminSession = Depends(require_admin_page_session),
    github: GitHubContentsClient = Depends(get_admin_page_github),
):
    category: Optional[Category] = await github.fetch_category(category_id)
    if category is None:
        raise NotFound("Category not found")

    return templates.TemplateResponse(
        request,
        "category_form.html",
        {"user": session.user, "category": category, **CATEGORY_FORM_OPTIONS},
    )
