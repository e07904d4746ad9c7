"""
tests/test_api_auth.py -- Integration tests for /api/v1/auth/* through the real ASGI stack.

Each test gets a fresh store via the client fixture. TestClient keeps cookies
between requests like a browser, so tests that exercise the JSON-body refresh
path clear the jar first (the refreshToken cookie wins over the body).

Covers:
  - register: 201 envelope without secrets, 400 listing missing fields, 409
    duplicate, profile image upload, unsupported image type 400
  - login: envelope with both tokens, httpOnly cookies, no-store header, 401
  - refresh: via cookie, via body, superseded token 401
  - logout: clears cookies and the stored token; requires auth
  - me: cookie and Bearer header, served from the stored profile; 401 without a token
  - Envelope shape for malformed bodies, unknown routes and unexpected errors,
    and the error envelope schema in OpenAPI
"""

from __future__ import annotations

from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from api.main import app
from auth.tokens import ACCESS_COOKIE, REFRESH_COOKIE

REGISTER_FORM = {"email": "a@x.com", "displayName": "A", "password": "secret1", "userName": "alice"}
LOGIN = {"email": "a@x.com", "password": "secret1"}


def _register(client: TestClient, **overrides):
    return client.post("/api/v1/auth/register", data={**REGISTER_FORM, **overrides})


def _register_and_login(client: TestClient) -> dict:
    assert _register(client).status_code == 201
    resp = client.post("/api/v1/auth/login", json=LOGIN)
    assert resp.status_code == 200
    return resp.json()["data"]


def _stored_tokens(client: TestClient, email: str = "a@x.com") -> list[str]:
    return client.app.state.user_store.find_user_by_email_or_handle(email).refresh_tokens


def _assert_failure_envelope(body: dict, status: int) -> None:
    assert body["statusCode"] == status
    assert body["success"] is False
    assert body["data"] is None
    assert isinstance(body["errors"], list)
    assert body["message"]


class TestRegister:
    def test_register_201(self, client: TestClient) -> None:
        resp = _register(client)
        assert resp.status_code == 201
        body = resp.json()
        assert body["statusCode"] == 201
        assert body["success"] is True
        assert body["message"] == "User registered successfully"
        user = body["data"]["user"]
        assert user["email"] == "a@x.com"
        assert user["displayName"] == "A"
        assert user["userName"] == "alice"
        assert user["role"] == "user"
        assert "password" not in resp.text
        assert "hashedPassword" not in user
        assert "refreshTokens" not in user

    def test_missing_fields_400(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/register", data={"email": "a@x.com"})
        assert resp.status_code == 400
        body = resp.json()
        _assert_failure_envelope(body, 400)
        assert "displayName" in body["message"]
        assert "password" in body["message"]

    def test_duplicate_409(self, client: TestClient) -> None:
        _register(client)
        resp = _register(client, userName="other")
        assert resp.status_code == 409
        _assert_failure_envelope(resp.json(), 409)

    def test_register_with_profile_image(self, client: TestClient, media) -> None:
        resp = client.post(
            "/api/v1/auth/register",
            data=REGISTER_FORM,
            files={"profileImage": ("me.png", b"\x89PNG\r\n\x1a\nbytes", "image/png")},
        )
        assert resp.status_code == 201
        url = resp.json()["data"]["user"]["profileImageUrl"]
        assert url.startswith("/media/")
        assert (media.root / url.rsplit("/", 1)[1]).exists()

    def test_unsupported_image_type_stores_nothing(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/auth/register",
            data=REGISTER_FORM,
            files={"profileImage": ("me.exe", b"MZ", "application/octet-stream")},
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["message"] == "Unsupported image type."
        assert body["errors"]
        assert client.app.state.user_store.has_users() is False


class TestLogin:
    def test_login_sets_tokens_and_cookies(self, client: TestClient) -> None:
        _register(client)
        resp = client.post("/api/v1/auth/login", json=LOGIN)
        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "no-store"
        body = resp.json()
        assert body["message"] == "User logged in successfully"
        data = body["data"]
        assert data["tokenType"] == "bearer"
        assert data["accessTokenExpiresIn"] == 900
        assert data["refreshTokenExpiresIn"] == 3600
        assert data["user"]["email"] == "a@x.com"
        assert resp.cookies[ACCESS_COOKIE] == data["accessToken"]
        assert resp.cookies[REFRESH_COOKIE] == data["refreshToken"]
        assert _stored_tokens(client) == [data["refreshToken"]]
        set_cookie = resp.headers.get_list("set-cookie")
        assert all("httponly" in h.lower() for h in set_cookie)

    def test_login_by_user_name(self, client: TestClient) -> None:
        _register(client)
        resp = client.post("/api/v1/auth/login", json={"userName": "alice", "password": "secret1"})
        assert resp.status_code == 200

    def test_bad_credentials_same_response(self, client: TestClient) -> None:
        _register(client)
        wrong = client.post("/api/v1/auth/login", json={**LOGIN, "password": "nope123"})
        unknown = client.post("/api/v1/auth/login", json={"email": "b@x.com", "password": "secret1"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()
        assert wrong.json()["message"] == "Invalid credentials"
        assert ACCESS_COOKIE not in wrong.cookies

    def test_non_object_body_400(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/login", json=["a@x.com", "secret1"])
        assert resp.status_code == 400
        _assert_failure_envelope(resp.json(), 400)


class TestRefresh:
    def test_refresh_via_cookie(self, client: TestClient) -> None:
        old = _register_and_login(client)["refreshToken"]
        resp = client.post("/api/v1/auth/refresh")
        assert resp.status_code == 200
        assert resp.json()["message"] == "Access token refreshed"
        new = resp.json()["data"]["refreshToken"]
        assert new != old
        assert resp.cookies[REFRESH_COOKIE] == new
        assert _stored_tokens(client) == [new]

    def test_refresh_via_body_and_reuse(self, client: TestClient) -> None:
        old = _register_and_login(client)["refreshToken"]
        client.cookies.clear()
        first = client.post("/api/v1/auth/refresh", json={"refreshToken": old})
        assert first.status_code == 200

        client.cookies.clear()
        reused = client.post("/api/v1/auth/refresh", json={"refreshToken": old})
        assert reused.status_code == 401
        _assert_failure_envelope(reused.json(), 401)
        assert _stored_tokens(client) == [first.json()["data"]["refreshToken"]]

    def test_refresh_without_token_400(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/refresh")
        assert resp.status_code == 400
        assert "refreshToken" in resp.json()["message"]


class TestLogoutAndMe:
    def test_me_with_cookie(self, client: TestClient) -> None:
        _register_and_login(client)
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 200
        assert resp.json()["data"]["user"]["email"] == "a@x.com"

    def test_me_reads_stored_profile(self, client: TestClient) -> None:
        """The identity comes from the session manager's profile lookup, not the token claims."""
        _register_and_login(client)
        sessions = client.app.state.sessions
        sessions.profile = MagicMock(wraps=sessions.profile)
        user_id = client.app.state.user_store.find_user_by_email_or_handle("a@x.com").id
        client.app.state.user_store.update_user(user_id, display_name="Renamed")

        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 200
        assert resp.json()["message"] == "Current user fetched"
        assert resp.json()["data"]["user"]["displayName"] == "Renamed"
        sessions.profile.assert_called_once_with(user_id)

    def test_me_with_bearer_header(self, client: TestClient) -> None:
        access = _register_and_login(client)["accessToken"]
        client.cookies.clear()
        resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {access}"})
        assert resp.status_code == 200

    def test_me_without_token_401(self, client: TestClient) -> None:
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        body = resp.json()
        _assert_failure_envelope(body, 401)
        assert body["message"] == "No token provided"

    def test_me_with_invalid_token_401(self, client: TestClient) -> None:
        resp = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid token"

    def test_logout_clears_session(self, client: TestClient) -> None:
        data = _register_and_login(client)
        resp = client.post("/api/v1/auth/logout")
        assert resp.status_code == 200
        assert resp.json()["message"] == "User logged out successfully"
        assert _stored_tokens(client) == []
        assert ACCESS_COOKIE not in client.cookies

        refreshed = client.post("/api/v1/auth/refresh", json={"refreshToken": data["refreshToken"]})
        assert refreshed.status_code == 401

    def test_logout_requires_auth(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/logout")
        assert resp.status_code == 401


class TestErrorBoundary:
    def test_unknown_route_404_envelope(self, client: TestClient) -> None:
        resp = client.get("/api/v1/nope")
        assert resp.status_code == 404
        _assert_failure_envelope(resp.json(), 404)

    def test_unexpected_error_is_generic_500(self, client: TestClient) -> None:
        store = client.app.state.user_store

        def explode(value):
            raise RuntimeError("database file is corrupt at /var/lib/secret.db")

        store.find_user_by_email_or_handle = explode
        with TestClient(app, raise_server_exceptions=False) as raw:
            resp = raw.post("/api/v1/auth/login", json=LOGIN)
        assert resp.status_code == 500
        body = resp.json()
        _assert_failure_envelope(body, 500)
        assert "corrupt" not in resp.text
        assert body["message"] == "An unexpected error occurred."

    def test_error_envelope_documented_in_openapi(self, client: TestClient) -> None:
        schema = client.get("/openapi.json").json()
        envelope = schema["components"]["schemas"]["ErrorEnvelope"]
        assert {"statusCode", "message", "errors", "data", "success"} <= set(envelope["properties"])
        login_responses = schema["paths"]["/api/v1/auth/login"]["post"]["responses"]
        assert login_responses["401"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorEnvelope")
        register_responses = schema["paths"]["/api/v1/auth/register"]["post"]["responses"]
        assert "409" in register_responses
