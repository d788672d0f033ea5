# =============================================================================
# tests/test_auth_api.py - OAuth Login Flow Tests
# =============================================================================

from urllib.parse import parse_qs, unquote, urlsplit

import pytest

from app.services.authentication import (
    OAUTH_STATE_COOKIE_NAME,
    SESSION_COOKIE_NAME,
    session_from_cookie,
)


def _set_cookie_headers(response):
    return response.headers.get_list("set-cookie")


def _cookie_value(response, name):
    for header in _set_cookie_headers(response):
        if header.startswith(f"{name}="):
            return header.split(";", 1)[0].split("=", 1)[1].strip('"')
    return None


def _error_message(response):
    query = parse_qs(urlsplit(response.headers["location"]).query)
    return query["error"][0]


@pytest.fixture
def state_client(client):
    client.cookies.set(OAUTH_STATE_COOKIE_NAME, "expected-state")
    return client


class TestLogin:

    def test_redirects_to_github_with_state_cookie(self, client):
        response = client.get("/api/admin/login", follow_redirects=False)

        assert response.status_code == 302
        location = urlsplit(response.headers["location"])
        assert location.netloc == "github.com"
        state = parse_qs(location.query)["state"][0]
        assert _cookie_value(response, OAUTH_STATE_COOKIE_NAME) == state
        assert "httponly" in _set_cookie_headers(response)[0].lower()


class TestCallback:

    def test_success_sets_session_cookie(self, state_client):
        response = state_client.get(
            "/api/admin/callback",
            params={"code": "abc", "state": "expected-state"},
            follow_redirects=False,
        )

        assert response.status_code == 302
        assert response.headers["location"] == "http://testserver/admin/dashboard"

        value = _cookie_value(response, SESSION_COOKIE_NAME)
        session = session_from_cookie(value)
        assert session.user.login == "octocat"
        assert session.access_token == "gho_abc"

        header = next(h for h in _set_cookie_headers(response) if h.startswith(SESSION_COOKIE_NAME))
        assert "Max-Age=604800" in header
        attributes = header.split(";", 1)[1].lower()
        assert "samesite=lax" in attributes
        assert "httponly" in attributes
        assert "secure" not in attributes

    def test_github_error_param(self, state_client):
        response = state_client.get(
            "/api/admin/callback", params={"error": "access_denied"}, follow_redirects=False
        )

        assert response.headers["location"].startswith("http://testserver/admin?error=")
        assert _error_message(response) == "access_denied"

    def test_missing_code(self, state_client):
        response = state_client.get("/api/admin/callback", follow_redirects=False)
        assert _error_message(response) == "No authorization code received"

    def test_state_mismatch(self, state_client, fake_github):
        response = state_client.get(
            "/api/admin/callback", params={"code": "abc", "state": "forged"}, follow_redirects=False
        )

        assert _error_message(response) == "Invalid OAuth state"
        assert fake_github.requests == []

    def test_missing_state_cookie(self, client):
        response = client.get(
            "/api/admin/callback", params={"code": "abc", "state": "expected-state"}, follow_redirects=False
        )
        assert _error_message(response) == "Invalid OAuth state"

    def test_token_exchange_failure(self, state_client, fake_github):
        fake_github.oauth_error = "bad_verification_code"

        response = state_client.get(
            "/api/admin/callback", params={"code": "abc", "state": "expected-state"}, follow_redirects=False
        )

        assert _error_message(response) == "Failed to authenticate with GitHub"
        assert _cookie_value(response, SESSION_COOKIE_NAME) is None

    def test_no_push_access(self, state_client, fake_github):
        fake_github.push_access = False

        response = state_client.get(
            "/api/admin/callback", params={"code": "abc", "state": "expected-state"}, follow_redirects=False
        )

        assert _error_message(response) == "You do not have write access to the templates repository"
        assert _cookie_value(response, SESSION_COOKIE_NAME) is None

    def test_error_message_is_url_encoded(self, state_client):
        response = state_client.get("/api/admin/callback", follow_redirects=False)

        raw_query = urlsplit(response.headers["location"]).query
        assert " " not in raw_query
        assert unquote(raw_query) == "error=No authorization code received"


class TestSession:

    def test_logout_clears_cookie(self, admin_client):
        response = admin_client.post("/api/admin/logout", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "http://testserver/admin"
        header = next(h for h in _set_cookie_headers(response) if h.startswith(SESSION_COOKIE_NAME))
        assert "Max-Age=0" in header

    def test_session_endpoint(self, admin_client):
        body = admin_client.get("/api/admin/session").json()

        assert body["authenticated"] is True
        assert body["user"]["login"] == "octocat"
        assert "access_token" not in body["user"]

    def test_session_endpoint_anonymous(self, client):
        assert client.get("/api/admin/session").json() == {"authenticated": False}
