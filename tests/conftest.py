# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up environment variables before any app imports
# - A fake GitHub (Contents API, OAuth, favicon hosts) on httpx.MockTransport
# - TestClient fixtures with and without an admin session
# =============================================================================

import base64
import hashlib
import json
import os
from typing import Dict, List, Optional, Tuple

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# app.main reads settings at import time

os.environ.setdefault("GITHUB_CLIENT_ID", "test-client-id")
os.environ.setdefault("GITHUB_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("GITHUB_TEMPLATES_TOKEN", "test-server-token")
os.environ.setdefault("APP_URL", "http://testserver")
os.environ.setdefault("ENVIRONMENT", "development")

import httpx
import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings, get_settings
from app.core.dependencies import get_http_transport
from app.domain.models import GitHubUser
from app.main import app
from app.services.authentication import SESSION_COOKIE_NAME, create_session, encode_session
from app.services.github import ACCEPT_RAW, GitHubContentsClient
from app.services.icons import IconFetcher

ORG = "web2appstudio"
REPO = "web2app-templates"

# Smallest body the icon fetcher accepts is 100 bytes
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 192


# =============================================================================
# Fake GitHub
# =============================================================================

class FakeGitHub:
    """
    In-memory stand-in for the parts of GitHub the app talks to.

    ``files`` maps repository paths to bytes; SHAs are the SHA-1 of the
    content. Every write is recorded in ``commits`` as (method, path, message).
    ``favicons`` maps absolute URLs to (status, content type, body).
    """

    def __init__(self, org: str = ORG, repo: str = REPO):
        self.repo_path = f"/repos/{org}/{repo}"
        self.contents_prefix = f"{self.repo_path}/contents/"
        self.files: Dict[str, bytes] = {}
        self.commits: List[Tuple[str, str, str]] = []
        self.favicons: Dict[str, Tuple[int, str, bytes]] = {}
        self.fail_writes: Dict[str, str] = {}
        self.push_access = True
        self.oauth_error: Optional[str] = None
        self.user = {
            "id": 42,
            "login": "octocat",
            "name": "The Octocat",
            "avatar_url": "https://avatars.example.com/octocat.png",
            "email": "octocat@example.com",
        }
        self.requests: List[httpx.Request] = []
        self.transport = httpx.MockTransport(self.handler)

    # --------------------------------------------------------------------------
    # Seeding / inspection helpers
    # --------------------------------------------------------------------------

    def put_json(self, path: str, document) -> None:
        self.files[path] = json.dumps(document).encode("utf-8")

    def read_json(self, path: str):
        return json.loads(self.files[path])

    def sha(self, path: str) -> str:
        return hashlib.sha1(self.files[path]).hexdigest()

    def commit_messages(self) -> List[str]:
        return [message for _, _, message in self.commits]

    # --------------------------------------------------------------------------
    # Routing
    # --------------------------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host == "github.com":
            return self._oauth(request)
        if host == "api.github.com":
            return self._api(request)
        return self._favicon(request)

    def _oauth(self, request: httpx.Request) -> httpx.Response:
        if request.url.path != "/login/oauth/access_token":
            return httpx.Response(404)
        if self.oauth_error:
            return httpx.Response(200, json={"error": self.oauth_error})
        body = json.loads(request.content)
        return httpx.Response(200, json={"access_token": f"gho_{body['code']}"})

    def _api(self, request: httpx.Request) -> httpx.Response:
        if not request.headers.get("authorization", "").startswith("Bearer "):
            return httpx.Response(401, json={"message": "Requires authentication"})

        path = request.url.path
        if path == "/user":
            return httpx.Response(200, json=self.user)
        if path == self.repo_path:
            return httpx.Response(200, json={"permissions": {"push": self.push_access}})
        if path.startswith(self.contents_prefix):
            file_path = path[len(self.contents_prefix):]
            if request.method == "GET":
                return self._get(request, file_path)
            if request.method == "PUT":
                return self._put(request, file_path)
            if request.method == "DELETE":
                return self._delete(request, file_path)
        return httpx.Response(404, json={"message": "Not Found"})

    def _get(self, request: httpx.Request, file_path: str) -> httpx.Response:
        if file_path in self.files:
            if request.headers.get("accept") == ACCEPT_RAW:
                return httpx.Response(200, content=self.files[file_path])
            return httpx.Response(200, json=self._entry(file_path))
        children = self._children(file_path)
        if children:
            return httpx.Response(200, json=children)
        return httpx.Response(404, json={"message": "Not Found"})

    def _put(self, request: httpx.Request, file_path: str) -> httpx.Response:
        body = json.loads(request.content)
        if file_path in self.fail_writes:
            return httpx.Response(422, json={"message": self.fail_writes[file_path]})
        existed = file_path in self.files
        if existed and body.get("sha") != self.sha(file_path):
            return httpx.Response(409, json={"message": f"{file_path} does not match"})
        self.files[file_path] = base64.b64decode(body["content"])
        self.commits.append(("PUT", file_path, body["message"]))
        return httpx.Response(200 if existed else 201, json={"content": self._entry(file_path)})

    def _delete(self, request: httpx.Request, file_path: str) -> httpx.Response:
        body = json.loads(request.content)
        if file_path not in self.files:
            return httpx.Response(404, json={"message": "Not Found"})
        if body.get("sha") != self.sha(file_path):
            return httpx.Response(409, json={"message": f"{file_path} does not match"})
        del self.files[file_path]
        self.commits.append(("DELETE", file_path, body["message"]))
        return httpx.Response(200, json={"commit": {}})

    def _favicon(self, request: httpx.Request) -> httpx.Response:
        status, content_type, body = self.favicons.get(str(request.url), (404, "text/html", b""))
        return httpx.Response(status, headers={"content-type": content_type}, content=body)

    def _entry(self, file_path: str) -> dict:
        return {
            "name": file_path.rsplit("/", 1)[-1],
            "path": file_path,
            "sha": self.sha(file_path),
            "type": "file",
        }

    def _children(self, directory: str) -> List[dict]:
        prefix = directory.rstrip("/") + "/"
        entries: Dict[str, dict] = {}
        for path in sorted(self.files):
            if not path.startswith(prefix):
                continue
            rest = path[len(prefix):]
            if "/" in rest:
                name = rest.split("/", 1)[0]
                entries.setdefault(name, {"name": name, "path": prefix + name, "sha": "", "type": "dir"})
            else:
                entries[rest] = self._entry(path)
        return list(entries.values())


# =============================================================================
# Sample catalog
# =============================================================================

def sample_manifest() -> dict:
    return {
        "version": "1.0",
        "lastUpdated": "2024-01-01",
        "categories": [
            {
                "id": "productivity",
                "name": "Productivity",
                "icon": "checkmark.circle.fill",
                "emoji": "✅",
                "shortDescription": "Get things done",
                "templateCount": 2,
                "configuration": {"windowPreset": "desktop", "showPageURL": False},
            },
            {
                "id": "media",
                "name": "Media",
                "icon": "play.rectangle.fill",
                "emoji": "🎬",
                "templateCount": 1,
            },
        ],
        "featuredTemplates": ["notion"],
    }


def sample_template(template_id: str, name: str, url: str, category: str, **extra) -> dict:
    document = {
        "id": template_id,
        "name": name,
        "url": url,
        "category": category,
        "icon": name[0],
        "iconColor": "#22c55e",
        "iconBackground": "#FFFFFF",
        "description": f"{name} as a desktop app",
        "configuration": {"windowStyle": "normal", "windowWidth": 1200, "windowHeight": 800},
        "metadata": {"version": "1.0", "author": "Web2App Studio", "lastUpdated": "2024-01-01", "tier": 1, "tags": []},
    }
    document.update(extra)
    return document


def legacy_template() -> dict:
    """A stored template carrying values the admin form would not accept."""
    document = sample_template("spotify", "Spotify", "https://open.spotify.com", "media", description=None)
    document["configuration"] = {"windowStyle": "normal", "windowWidth": None, "userAgent": "firefox"}
    return document


def seed_catalog(fake: FakeGitHub) -> None:
    fake.put_json("manifest.json", sample_manifest())
    fake.put_json(
        "templates/productivity/notion.json",
        sample_template("notion", "Notion", "https://notion.so", "productivity"),
    )
    fake.put_json(
        "templates/productivity/todoist.json",
        sample_template(
            "todoist", "Todoist", "https://todoist.com", "productivity",
            iconUrl="icons/todoist.png", iconShape="rounded",
            metadata={"tier": 2, "tags": ["tasks"]},
        ),
    )
    fake.put_json(
        "templates/media/youtube.json",
        sample_template("youtube", "YouTube", "https://youtube.com", "media"),
    )
    fake.files["icons/todoist.png"] = PNG_BYTES


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings():
    return Settings(
        GITHUB_CLIENT_ID="test-client-id",
        GITHUB_CLIENT_SECRET="test-client-secret",
        GITHUB_TEMPLATES_TOKEN="test-server-token",
        APP_URL="http://testserver",
        ENVIRONMENT="development",
    )


@pytest.fixture
def fake_github():
    fake = FakeGitHub()
    seed_catalog(fake)
    return fake


@pytest.fixture
def github_client(settings, fake_github):
    return GitHubContentsClient.from_settings(settings, "gho_admin", fake_github.transport)


@pytest.fixture
def icon_fetcher(fake_github):
    return IconFetcher(transport=fake_github.transport)


@pytest.fixture
def admin_user():
    return GitHubUser(id=42, login="octocat", name="The Octocat", avatar_url="https://avatars.example.com/octocat.png")


@pytest.fixture
def client(settings, fake_github):
    """TestClient wired to the fake GitHub, without a session."""
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_http_transport] = lambda: fake_github.transport
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client, admin_user):
    """TestClient carrying a valid admin session cookie."""
    client.cookies.set(SESSION_COOKIE_NAME, encode_session(create_session(admin_user, "gho_admin")))
    return client
