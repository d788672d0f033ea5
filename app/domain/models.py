"""
Pydantic models for the template catalog.

This module defines all data models used throughout the application, including:
- Templates and their window/browsing configuration
- Categories with shared default configuration
- The manifest that indexes categories and featured templates
- GitHub users and admin sessions
- API request/response bodies

Documents stored in the backing repository use camelCase keys. Models expose
snake_case attributes, accept either spelling on input, and serialize back to
camelCase. Unknown keys are preserved so a read-modify-write cycle never drops
fields written by other tools.
"""

from __future__ import annotations

from typing import ClassVar, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from app.domain.catalog_utils import parse_tags


# ---------------------------------------------------------------------------
# Shared constants
# ---------------------------------------------------------------------------


IconShape = Literal["circular", "rounded", "square"]
WindowStyle = Literal["normal", "menuBar", "sidebar"]
LinkBehavior = Literal["sameWindow", "newTab", "systemBrowser"]
WindowPreset = Literal["phone", "tablet", "desktop", "fullHD", "fourK", "custom"]

# Validation context for documents read back from the repository
STORED_CONTEXT = {"stored": True}

# Corner radius per icon shape, based on a 256px icon.
ICON_SHAPE_RADIUS: Dict[str, int] = {
    "circular": 128,
    "rounded": 56,
    "square": 0,
}

WINDOW_PRESETS: Dict[str, Tuple[int, int]] = {
    "phone": (375, 667),
    "tablet": (768, 1024),
    "desktop": (1200, 800),
    "fullHD": (1920, 1080),
    "fourK": (3840, 2160),
    "custom": (1200, 800),
}

CATEGORIES: Tuple[str, ...] = (
    "productivity",
    "communication",
    "media",
    "social",
    "developer",
    "finance",
    "news",
    "shopping",
    "design",
    "education",
    "utilities",
    "gaming",
)

CATEGORY_COLORS: Dict[str, str] = {
    "productivity": "#22c55e",
    "communication": "#14b8a6",
    "media": "#f97316",
    "design": "#6366f1",
    "developer": "#06b6d4",
    "finance": "#a855f7",
    "social": "#ec4899",
    "news": "#3b82f6",
    "shopping": "#f59e0b",
    "education": "#8b5cf6",
    "utilities": "#64748b",
    "gaming": "#ef4444",
}

DEFAULT_CATEGORY_COLOR = "#6366f1"


class CatalogModel(BaseModel):
    """
    Base for every document stored in the backing repository.

    Subclasses set ``drop_none`` when optional keys should be omitted from the
    stored JSON instead of being written as ``null``.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    drop_none: ClassVar[bool] = False

    @field_validator("*", mode="wrap")
    @classmethod
    def _keep_stored_value(cls, value, handler, info: ValidationInfo):
        # Documents loaded with STORED_CONTEXT keep values that admin input
        # would reject, so they stay listable and round-trip unchanged.
        try:
            return handler(value)
        except ValidationError:
            if info.context and info.context.get("stored"):
                return value
            raise

    @classmethod
    def from_stored(cls, data):
        """Validate a document read back from the repository."""
        return cls.model_validate(data, context=STORED_CONTEXT)

    def to_document(self) -> dict:
        """Serialize to the camelCase JSON shape stored in the repository."""
        return self.model_dump(
            mode="json", by_alias=True, exclude_none=self.drop_none, warnings=False
        )


# ---------------------------------------------------------------------------
# Template Models
# ---------------------------------------------------------------------------


class TemplateConfiguration(CatalogModel):
    """
    Window and browsing behavior applied when an app is built from a template.
    """

    window_style: WindowStyle = "normal"
    window_width: int = 1200
    window_height: int = 800
    tabbed_browsing: bool = True
    notifications: bool = True
    internal_link_behavior: LinkBehavior = "newTab"
    external_link_behavior: LinkBehavior = "systemBrowser"
    cookie_policy: Literal["persistent", "session"] = "persistent"
    user_agent: Literal["default", "chrome", "safari"] = "default"
    ad_blocking: Literal["disabled", "basic", "advanced"] = "basic"


class TemplateMetadata(CatalogModel):
    """
    Bookkeeping for a template. ``tier`` above 1 marks a Pro template.
    """

    version: str = "1.0"
    author: str = "Web2App Studio"
    last_updated: str = Field(default="", description="ISO date (YYYY-MM-DD) of the last save.")
    tier: int = 1
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tag_string(cls, value):
        # The admin form submits tags as one comma-separated string
        if isinstance(value, str):
            return parse_tags(value)
        return value

    @property
    def is_pro(self) -> bool:
        return isinstance(self.tier, int) and self.tier > 1


class Template(CatalogModel):
    """
    One pre-configured website-wrapping app, stored at
    ``templates/<category>/<id>.json``.

    Required fields (id, name, url, category) default to empty strings so that
    handlers can report all missing fields in a single 400 response.
    """

    drop_none: ClassVar[bool] = True

    id: str = ""
    name: str = ""
    url: str = ""
    category: str = ""
    icon: str = ""
    icon_color: str = DEFAULT_CATEGORY_COLOR
    icon_background: str = "#FFFFFF"
    icon_url: Optional[str] = Field(
        default=None,
        description="Repository path of the uploaded icon image (e.g. 'icons/notion.png').",
    )
    icon_shape: Optional[IconShape] = None
    description: str = ""
    configuration: TemplateConfiguration = Field(default_factory=TemplateConfiguration)
    metadata: TemplateMetadata = Field(default_factory=TemplateMetadata)

    @property
    def path(self) -> str:
        return template_path(self.category, self.id)


def template_path(category_id: str, template_id: str) -> str:
    return f"templates/{category_id}/{template_id}.json"


# ---------------------------------------------------------------------------
# Category Models
# ---------------------------------------------------------------------------


class CategoryConfiguration(CatalogModel):
    """
    Default app behavior for every template in a category.

    Null window dimensions mean "use the preset's size"; null user agent and
    permission values mean "leave the system default".
    """

    # Window settings
    window_style: WindowStyle = "normal"
    window_preset: WindowPreset = "desktop"
    window_width: Optional[int] = None
    window_height: Optional[int] = None

    # Standard features
    show_navigation_controls: bool = True
    show_page_url: bool = Field(default=True, alias="showPageURL")
    cookie_persistence: bool = True
    enable_keyboard_shortcuts: bool = True
    enable_dock_badge: bool = False
    enable_password_auto_fill: bool = True
    launch_at_login: bool = False
    float_on_top: bool = False
    enable_developer_tools: bool = False

    # Pro features
    tabbed_browsing: bool = False
    notifications: bool = False
    ad_blocking: bool = False

    # Link behavior
    internal_link_behavior: LinkBehavior = "sameWindow"
    external_link_behavior: LinkBehavior = "systemBrowser"

    # User agent
    user_agent: Optional[
        Literal["default", "chrome", "safari", "firefox", "mobileSafari", "custom"]
    ] = None
    custom_user_agent_string: Optional[str] = None

    # Toolbar
    use_custom_toolbar_color: bool = False
    toolbar_color: Optional[str] = None

    # Permissions
    allow_microphone: Optional[bool] = None
    allow_camera: Optional[bool] = None

    def resolved_window_size(self) -> Tuple[int, int]:
        """Return (width, height), falling back to the preset for null values."""
        preset_w, preset_h = WINDOW_PRESETS.get(self.window_preset, WINDOW_PRESETS["desktop"])
        return (
            self.window_width if self.window_width is not None else preset_w,
            self.window_height if self.window_height is not None else preset_h,
        )


class Category(CatalogModel):
    """
    A grouping of templates, stored as an entry of ``manifest.json``.
    """

    id: str = ""
    name: str = ""
    icon: str = Field(default="", description="SF Symbol name (e.g. 'chart.bar.fill').")
    emoji: str = ""
    short_description: str = ""
    full_description: str = ""
    description: str = Field(default="", description="Legacy field kept for manifest compatibility.")
    template_count: int = 0
    configuration: CategoryConfiguration = Field(default_factory=CategoryConfiguration)

    @property
    def color(self) -> str:
        return CATEGORY_COLORS.get(self.id, DEFAULT_CATEGORY_COLOR)


class Manifest(CatalogModel):
    """
    Top-level index of the catalog, stored at ``manifest.json``.
    """

    version: str = "1.0"
    last_updated: str = ""
    categories: List[Category] = Field(default_factory=list)
    featured_templates: List[str] = Field(default_factory=list)

    def find_category(self, category_id: str) -> Optional[Category]:
        for category in self.categories:
            if category.id == category_id:
                return category
        return None


# ---------------------------------------------------------------------------
# Authentication Models
# ---------------------------------------------------------------------------


class GitHubUser(BaseModel):
    """
    The subset of GitHub's ``/user`` response kept in the admin session.
    """

    id: int
    login: str
    name: Optional[str] = None
    avatar_url: str = ""
    email: Optional[str] = None


class AdminSession(BaseModel):
    """
    Admin session stored (base64-encoded JSON) in the session cookie.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user: GitHubUser
    access_token: str
    expires_at: int = Field(description="Expiry as Unix epoch milliseconds.")


# ---------------------------------------------------------------------------
# GitHub API Models
# ---------------------------------------------------------------------------


class ContentEntry(BaseModel):
    """One entry of a GitHub Contents API directory listing."""

    model_config = ConfigDict(extra="ignore")

    name: str
    path: str
    sha: str = ""
    type: Literal["file", "dir", "symlink", "submodule"] = "file"
    download_url: Optional[str] = None


# ---------------------------------------------------------------------------
# API Request/Response Models
# ---------------------------------------------------------------------------


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class CategoryTemplatesRequest(RequestModel):
    category: str = ""


class IconFetchRequest(RequestModel):
    url: str = ""


class IconUploadRequest(RequestModel):
    template_id: str = ""
    image_data: str = Field(
        default="",
        description="Base64 image data, with or without a 'data:<type>;base64,' prefix.",
    )


class BatchIconRequest(RequestModel):
    dry_run: bool = False


BatchStatus = Literal["success", "failed", "skipped"]


class BatchIconResult(RequestModel):
    template_id: str
    name: str
    category: str
    status: BatchStatus
    message: str


class BatchIconSummary(RequestModel):
    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0

    @classmethod
    def from_results(cls, results: List[BatchIconResult]) -> "BatchIconSummary":
        return cls(
            total=len(results),
            success=sum(1 for r in results if r.status == "success"),
            failed=sum(1 for r in results if r.status == "failed"),
            skipped=sum(1 for r in results if r.status == "skipped"),
        )
