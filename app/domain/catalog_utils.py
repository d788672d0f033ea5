import base64
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

TEMPLATE_REQUIRED_FIELDS = ("id", "name", "url", "category")
CATEGORY_REQUIRED_FIELDS = ("id", "name")

_DATA_URL_PREFIX = re.compile(r"^data:[^,]*,")

_ICON_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
}


def today_iso(now: Optional[datetime] = None) -> str:
    """
    Return the current UTC date as YYYY-MM-DD.
    """
    now = now or datetime.now(timezone.utc)
    return now.date().isoformat()


def missing_fields(obj: Any, fields: Sequence[str]) -> List[str]:
    """
    Return the names of the given attributes that are empty on ``obj``.
    Whitespace-only strings count as empty.
    """
    missing = []
    for f in fields:
        value = getattr(obj, f, None)
        if isinstance(value, str):
            value = value.strip()
        if not value:
            missing.append(f)
    return missing


def required_fields_message(fields: Sequence[str]) -> str:
    return "Missing required fields: " + ", ".join(fields)


def normalize_template_id(value: str) -> str:
    """
    Lowercase an id and collapse whitespace runs into single dashes.
    """
    return re.sub(r"\s+", "-", (value or "").strip().lower())


def parse_tags(value: str) -> List[str]:
    return [t.strip() for t in (value or "").split(",") if t.strip()]


def strip_data_url_prefix(image_data: str) -> str:
    """
    Remove a leading ``data:<type>;base64,`` prefix, if any.
    """
    return _DATA_URL_PREFIX.sub("", image_data or "", count=1)


def to_data_url(content: bytes, content_type: str) -> str:
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


def icon_content_type(path: str) -> str:
    """
    Map an icon path's extension to its content type; PNG when unknown.
    """
    lowered = path.lower()
    for ext, content_type in _ICON_CONTENT_TYPES.items():
        if lowered.endswith(ext):
            return content_type
    return "image/png"


def filter_templates(templates: Iterable[Any], query: str = "", category: str = "all") -> List[Any]:
    """
    Case-insensitive search over name, url, and id, optionally restricted to
    one category ("all" or empty means every category).
    """
    q = (query or "").strip().lower()
    result = []
    for t in templates:
        if category and category != "all" and t.category != category:
            continue
        if q and not any(q in (value or "").lower() for value in (t.name, t.url, t.id)):
            continue
        result.append(t)
    return result


def template_stats(templates: Sequence[Any], categories: Sequence[Any]) -> Dict[str, int]:
    pro = sum(1 for t in templates if t.metadata.is_pro)
    return {
        "total": len(templates),
        "categories": len(categories),
        "pro": pro,
        "free": len(templates) - pro,
    }


def is_repo_subpath(path: str, prefix: str) -> bool:
    """
    True when ``path`` is a plain relative path under the ``prefix`` directory.

    Dot segments, empty segments, backslashes and percent escapes are rejected
    so the path cannot resolve outside the repository's contents.
    """
    if not path or not path.startswith(prefix + "/"):
        return False
    if "\\" in path or "%" in path:
        return False
    return all(segment not in ("", ".", "..") for segment in path.split("/"))
