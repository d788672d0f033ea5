"""
GitHub Contents API client used as the catalog's storage layer.

The backing repository is a flat-file database:

    manifest.json                      categories + featured template ids
    templates/<category>/<id>.json     one file per template
    icons/<id>.png                     uploaded template icons

Writes go through the Contents API (look up the current SHA, then PUT or
DELETE). Overwrites are last-write-wins; GitHub rejects a PUT whose SHA is
stale and that error is passed through unchanged.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import List, Optional

import httpx

from app.core.config import Settings
from app.core.exceptions import GitHubError, NotFound
from app.domain.catalog_utils import strip_data_url_prefix, today_iso
from app.domain.models import (
    Category,
    ContentEntry,
    Manifest,
    Template,
    template_path,
)

logger = logging.getLogger(__name__)

USER_AGENT = "Web2App-Studio-Admin"
ACCEPT_JSON = "application/vnd.github.v3+json"
ACCEPT_RAW = "application/vnd.github.v3.raw"
MANIFEST_PATH = "manifest.json"


def icon_path(template_id: str) -> str:
    return f"icons/{template_id}.png"


def icon_proxy_url(path: str) -> str:
    """
    URL under which an icon stored in the (private) repository is served.
    """
    return f"/api/icons/{path}"


def _dump_document(document: dict) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False)


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        return default
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return default


class GitHubContentsClient:
    """
    Thin async wrapper around the Contents API for one repository and branch.

    The underlying ``httpx.AsyncClient`` is owned by this object; use it as an
    async context manager or call ``aclose()``.
    """

    def __init__(
        self,
        access_token: str,
        *,
        org: str,
        repo: str,
        branch: str = "main",
        api_url: str = "https://api.github.com",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.org = org
        self.repo = repo
        self.branch = branch
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": ACCEPT_JSON,
                "User-Agent": USER_AGENT,
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        access_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "GitHubContentsClient":
        return cls(
            access_token,
            org=settings.GITHUB_ORG,
            repo=settings.GITHUB_REPO,
            branch=settings.GITHUB_BRANCH,
            api_url=settings.GITHUB_API_URL,
            timeout=settings.HTTP_TIMEOUT,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubContentsClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _contents_url(self, path: str) -> str:
        return f"/repos/{self.org}/{self.repo}/contents/{path}"

    # ------------------------------------------------------------------
    # Low-level file operations
    # ------------------------------------------------------------------

    async def get_file_sha(self, path: str) -> Optional[str]:
        """
        Return the blob SHA of ``path``, or None when it does not exist or
        cannot be read.
        """
        try:
            response = await self._client.get(
                self._contents_url(path), params={"ref": self.branch}
            )
        except httpx.HTTPError as e:
            logger.warning(f"SHA lookup for {path} failed: {e}")
            return None
        if not response.is_success:
            return None
        try:
            return response.json().get("sha")
        except (ValueError, AttributeError):
            return None

    async def put_base64_file(self, path: str, content_b64: str, message: str) -> None:
        """
        Create or overwrite ``path`` with already base64-encoded content.

        Raises:
            GitHubError: GitHub rejected the write or could not be reached.
        """
        existing_sha = await self.get_file_sha(path)
        body = {
            "message": message,
            "content": content_b64,
            "branch": self.branch,
        }
        if existing_sha:
            body["sha"] = existing_sha

        try:
            response = await self._client.put(self._contents_url(path), json=body)
        except httpx.HTTPError as e:
            raise GitHubError(str(e)) from e

        if not response.is_success:
            error = _error_message(response, "Failed to save file")
            logger.error(f"PUT {path} failed ({response.status_code}): {error}")
            raise GitHubError(error)
        logger.info(f"Committed {path}: {message}")

    async def create_or_update_file(self, path: str, content: str, message: str) -> None:
        encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")
        await self.put_base64_file(path, encoded, message)

    async def delete_file(self, path: str, message: str) -> None:
        """
        Delete ``path`` from the branch.

        Raises:
            GitHubError: The file does not exist or GitHub rejected the delete.
        """
        sha = await self.get_file_sha(path)
        if not sha:
            raise GitHubError("File not found")

        try:
            response = await self._client.request(
                "DELETE",
                self._contents_url(path),
                json={"message": message, "sha": sha, "branch": self.branch},
            )
        except httpx.HTTPError as e:
            raise GitHubError(str(e)) from e

        if not response.is_success:
            error = _error_message(response, "Failed to delete file")
            logger.error(f"DELETE {path} failed ({response.status_code}): {error}")
            raise GitHubError(error)
        logger.info(f"Deleted {path}: {message}")

    async def get_raw(self, path: str) -> Optional[bytes]:
        """
        Return the raw bytes of ``path``, or None when it does not exist.

        Raises:
            GitHubError: Any other failure.
        """
        try:
            response = await self._client.get(
                self._contents_url(path),
                params={"ref": self.branch},
                headers={"Accept": ACCEPT_RAW},
            )
        except httpx.HTTPError as e:
            raise GitHubError(str(e)) from e

        if response.status_code == 404:
            return None
        if not response.is_success:
            raise GitHubError(f"GitHub API error: {response.status_code}")
        return response.content

    async def get_json(self, path: str) -> Optional[object]:
        raw = await self.get_raw(path)
        if raw is None:
            return None
        return json.loads(raw)

    async def list_directory(self, path: str) -> Optional[List[ContentEntry]]:
        """
        Return the entries of directory ``path``, or None when it does not exist.
        """
        try:
            response = await self._client.get(
                self._contents_url(path), params={"ref": self.branch}
            )
        except httpx.HTTPError as e:
            raise GitHubError(str(e)) from e

        if response.status_code == 404:
            return None
        if not response.is_success:
            raise GitHubError(f"GitHub API error: {response.status_code}")

        payload = response.json()
        if not isinstance(payload, list):
            return None
        return [ContentEntry.model_validate(item) for item in payload]

    # ------------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------------

    async def fetch_manifest(self) -> Optional[Manifest]:
        try:
            data = await self.get_json(MANIFEST_PATH)
            if data is None:
                return None
            return Manifest.from_stored(data)
        except (GitHubError, ValueError) as e:
            logger.warning(f"Could not load manifest: {e}")
            return None

    async def update_manifest(self, manifest: Manifest) -> None:
        await self.create_or_update_file(
            MANIFEST_PATH, _dump_document(manifest.to_document()), "Update manifest"
        )

    async def _require_manifest(self) -> Manifest:
        manifest = await self.fetch_manifest()
        if manifest is None:
            raise GitHubError("Failed to fetch manifest")
        return manifest

    async def update_template_counts(self) -> Manifest:
        """
        Recount the templates of every category and save the manifest.
        """
        manifest = await self._require_manifest()
        for category in manifest.categories:
            category.template_count = await self.count_category_templates(category.id)
        manifest.last_updated = today_iso()
        await self.update_manifest(manifest)
        return manifest

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    async def _template_entries(self, category_id: str) -> List[ContentEntry]:
        try:
            entries = await self.list_directory(f"templates/{category_id}")
        except GitHubError as e:
            logger.warning(f"Listing templates/{category_id} failed: {e}")
            return []
        return [e for e in (entries or []) if e.name.endswith(".json")]

    async def count_category_templates(self, category_id: str) -> int:
        return len(await self._template_entries(category_id))

    async def fetch_category_templates(self, category_id: str) -> List[Template]:
        """
        Load every template of a category. Unreadable files are skipped.
        """
        templates: List[Template] = []
        for entry in await self._template_entries(category_id):
            try:
                data = await self.get_json(entry.path)
                if data is None:
                    continue
                templates.append(Template.from_stored(data))
            except (GitHubError, ValueError) as e:
                logger.warning(f"Skipping unreadable template {entry.path}: {e}")
        return templates

    async def fetch_all_templates(self) -> List[Template]:
        manifest = await self.fetch_manifest()
        if manifest is None:
            return []
        templates: List[Template] = []
        for category in manifest.categories:
            templates.extend(await self.fetch_category_templates(category.id))
        return templates

    async def fetch_template(self, template_id: str, category_id: str) -> Optional[Template]:
        try:
            data = await self.get_json(template_path(category_id, template_id))
            if data is None:
                return None
            return Template.from_stored(data)
        except (GitHubError, ValueError) as e:
            logger.warning(f"Could not load template {category_id}/{template_id}: {e}")
            return None

    async def save_template(self, template: Template, is_new: bool = False) -> None:
        message = f"Add template: {template.name}" if is_new else f"Update template: {template.name}"
        await self.create_or_update_file(
            template.path, _dump_document(template.to_document()), message
        )

    async def delete_template(self, template_id: str, category_id: str) -> None:
        await self.delete_file(
            template_path(category_id, template_id), f"Delete template: {template_id}"
        )

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def fetch_all_categories(self) -> List[Category]:
        manifest = await self._require_manifest()
        return manifest.categories

    async def fetch_category(self, category_id: str) -> Optional[Category]:
        manifest = await self.fetch_manifest()
        if manifest is None:
            return None
        return manifest.find_category(category_id)

    async def save_category(self, category: Category) -> Category:
        """
        Replace a category entry in the manifest, keeping its stored
        template count.

        Raises:
            NotFound: No category with this id exists in the manifest.
        """
        manifest = await self._require_manifest()
        for index, existing in enumerate(manifest.categories):
            if existing.id == category.id:
                category.template_count = existing.template_count
                manifest.categories[index] = category
                break
        else:
            raise NotFound("Category not found")

        await self.create_or_update_file(
            MANIFEST_PATH,
            _dump_document(manifest.to_document()),
            f"Update category: {category.name}",
        )
        return category

    # ------------------------------------------------------------------
    # Icons
    # ------------------------------------------------------------------

    async def upload_icon(self, template_id: str, image_data: str) -> str:
        """
        Store an icon image for a template and return its repository path.
        """
        path = icon_path(template_id)
        await self.put_base64_file(
            path,
            strip_data_url_prefix(image_data),
            f"Add icon for template: {template_id}",
        )
        return path

    async def delete_icon(self, template_id: str) -> None:
        await self.delete_file(icon_path(template_id), f"Delete icon for template: {template_id}")
