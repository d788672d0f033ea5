"""
Favicon discovery and the batch icon upload routine.

Icons are looked up on a fixed list of well-known locations, highest quality
first; the first response that looks like a real image wins. The batch run
walks every template sequentially. It does not retry and does not roll back:
a failure partway leaves earlier templates updated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlsplit

import httpx

from app.core.exceptions import GitHubError
from app.domain.catalog_utils import to_data_url
from app.domain.models import BatchIconResult, BatchIconSummary, Template
from app.services.github import GitHubContentsClient

logger = logging.getLogger(__name__)

ICON_USER_AGENT = "Web2App-Studio-Admin/1.0"
MIN_ICON_BYTES = 100


@dataclass
class IconFetchResult:
    success: bool
    data: Optional[str] = None
    source: Optional[str] = None
    error: Optional[str] = None


def icon_sources(host: str) -> List[str]:
    """
    Candidate icon URLs for ``host`` in priority order.
    """
    return [
        # Apple touch icons are usually 180x180 or larger
        f"https://{host}/apple-touch-icon.png",
        f"https://{host}/apple-touch-icon-precomposed.png",
        f"https://{host}/favicon-192x192.png",
        f"https://{host}/favicon-128x128.png",
        # Third-party favicon services
        f"https://www.google.com/s2/favicons?domain={host}&sz=256",
        f"https://icons.duckduckgo.com/ip3/{host}.ico",
        f"https://{host}/favicon.ico",
    ]


def parse_host(url: str) -> Optional[str]:
    """
    Return the host (with port, if any) of an absolute http(s) URL.
    """
    try:
        parts = urlsplit((url or "").strip())
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    return parts.netloc.rsplit("@", 1)[-1]


class IconFetcher:
    """
    Fetches website icons over plain HTTP.
    """

    def __init__(
        self,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            headers={"User-Agent": ICON_USER_AGENT},
            follow_redirects=True,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "IconFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _try_source(self, source: str) -> Optional[str]:
        try:
            response = await self._client.get(source)
        except httpx.HTTPError as e:
            logger.debug(f"Icon source {source} failed: {e}")
            return None
        if not response.is_success:
            return None

        content_type = response.headers.get("content-type") or "image/png"
        if "image" not in content_type:
            return None
        # Tiny bodies are placeholders or error pixels
        if len(response.content) < MIN_ICON_BYTES:
            return None
        return to_data_url(response.content, content_type)

    async def fetch(self, url: str) -> IconFetchResult:
        """
        Find an icon for the website at ``url``.

        Returns:
            IconFetchResult with a ``data:`` URL and the winning source on
            success, otherwise ``error`` set to "Invalid URL" or "No icon found".
        """
        host = parse_host(url)
        if host is None:
            return IconFetchResult(success=False, error="Invalid URL")

        for source in icon_sources(host):
            data = await self._try_source(source)
            if data is not None:
                return IconFetchResult(success=True, data=data, source=source)

        return IconFetchResult(success=False, error="No icon found")


def _result(template: Template, category_id: str, status: str, message: str) -> BatchIconResult:
    return BatchIconResult(
        template_id=template.id,
        name=template.name,
        category=category_id,
        status=status,
        message=message,
    )


async def process_template_icon(
    template: Template,
    category_id: str,
    github: GitHubContentsClient,
    fetcher: IconFetcher,
    dry_run: bool = False,
) -> BatchIconResult:
    if template.icon_url:
        return _result(template, category_id, "skipped", "Already has icon")

    icon = await fetcher.fetch(template.url)
    if not icon.success or not icon.data:
        return _result(template, category_id, "failed", icon.error or "No icon found")

    if dry_run:
        return _result(template, category_id, "success", "Would upload icon (dry run)")

    try:
        path = await github.upload_icon(template.id, icon.data)
    except GitHubError as e:
        return _result(template, category_id, "failed", e.message or "Failed to upload icon")

    updated = template.model_copy(update={"icon_url": path, "icon_shape": "rounded"})
    try:
        await github.save_template(updated, is_new=False)
    except GitHubError as e:
        return _result(template, category_id, "failed", e.message or "Failed to save template")

    return _result(template, category_id, "success", "Icon uploaded and template updated")


async def run_batch(
    github: GitHubContentsClient,
    fetcher: IconFetcher,
    dry_run: bool = False,
) -> tuple[BatchIconSummary, List[BatchIconResult]]:
    """
    Fetch and upload icons for every template that does not have one yet.

    Raises:
        GitHubError: The manifest could not be loaded.
    """
    manifest = await github.fetch_manifest()
    if manifest is None:
        raise GitHubError("Failed to fetch manifest")

    results: List[BatchIconResult] = []
    for category in manifest.categories:
        templates = await github.fetch_category_templates(category.id)
        for template in templates:
            result = await process_template_icon(template, category.id, github, fetcher, dry_run)
            logger.info(f"Batch icon {category.id}/{template.id}: {result.status} ({result.message})")
            results.append(result)

    summary = BatchIconSummary.from_results(results)
    suffix = " (dry run)" if dry_run else ""
    logger.info(
        f"Batch icon run finished: {summary.total} total, {summary.success} success, "
        f"{summary.failed} failed, {summary.skipped} skipped{suffix}"
    )
    return summary, results
