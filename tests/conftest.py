"""
Shared fixtures.

The identity provider is faked at the HTTP layer with ``httpx.MockTransport``
so the real ``IdentityClient`` runs end to end; the data store is the
in-memory store.
"""

from __future__ import annotations

import json
import time
from datetime import timedelta

import httpx
import jwt
import pytest
from fastapi.testclient import TestClient

from projecthub.api.app import create_app
from projecthub.config import Settings
from projecthub.core.models import Membership, Project, ProjectRole, ProjectStatus
from projecthub.core.utils import utc_now
from projecthub.integrations.identity import IdentityClient
from projecthub.storage.memory import MemoryProjectStore


def make_token(user_id: str, expires_in: int = 3600) -> str:
    """A well-formed JWT with an ``exp`` claim."""
    return jwt.encode(
        {"sub": user_id, "exp": int(time.time()) + expires_in},
        "test-secret",
        algorithm="HS256",
    )


# =============================================================================
# Fake identity provider
# =============================================================================


class FakeProvider:
    """
    Minimal GoTrue-style provider.

    ``mode`` switches failure behavior: "ok", "down" (503), "unreachable"
    (connection error), "explode" (handler raises a non-httpx error).
    """

    def __init__(self):
        self.mode = "ok"
        self.users: dict[str, dict] = {}
        self.tokens: dict[str, str] = {}       # access token -> user id
        self.refresh: dict[str, str] = {}      # refresh token -> user id
        self.passwords: dict[str, str] = {}    # email -> password
        self.calls: list[str] = []

    def add_user(self, user_id: str, email: str, password: str = "secret123") -> dict:
        user = {"id": user_id, "email": email, "user_metadata": {}}
        self.users[user_id] = user
        self.passwords[email] = password
        return user

    def issue(self, user_id: str, expires_in: int = 3600) -> str:
        token = make_token(user_id, expires_in)
        self.tokens[token] = user_id
        return token

    def issue_refresh(self, user_id: str) -> str:
        token = f"refresh-{user_id}-{len(self.refresh)}"
        self.refresh[token] = user_id
        return token

    def _session(self, user_id: str) -> dict:
        return {
            "access_token": self.issue(user_id),
            "refresh_token": self.issue_refresh(user_id),
            "expires_in": 3600,
            "user": self.users[user_id],
        }

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/auth/v1")
        self.calls.append(f"{request.method} {path}")

        if self.mode == "down":
            return httpx.Response(503, json={"message": "unavailable"})
        if self.mode == "unreachable":
            raise httpx.ConnectError("connection refused", request=request)
        if self.mode == "explode":
            raise RuntimeError("provider exploded")

        body = json.loads(request.content) if request.content else {}
        bearer = request.headers.get("authorization", "").removeprefix("Bearer ")

        if request.method == "GET" and path == "/user":
            user_id = self.tokens.get(bearer)
            if user_id is None:
                return httpx.Response(401, json={"msg": "invalid JWT"})
            return httpx.Response(200, json=self.users[user_id])

        if request.method == "POST" and path == "/token":
            grant = request.url.params.get("grant_type")
            if grant == "refresh_token":
                user_id = self.refresh.pop(body.get("refresh_token"), None)
                if user_id is None:
                    return httpx.Response(400, json={"error_description": "Invalid Refresh Token"})
                return httpx.Response(200, json=self._session(user_id))
            if grant == "password":
                email = body.get("email")
                if self.passwords.get(email) != body.get("password"):
                    return httpx.Response(400, json={"error_description": "Invalid login credentials"})
                user_id = next(u["id"] for u in self.users.values() if u["email"] == email)
                return httpx.Response(200, json=self._session(user_id))

        if request.method == "POST" and path == "/signup":
            email = body.get("email")
            if email in self.passwords:
                return httpx.Response(422, json={"msg": "User already registered"})
            user = self.add_user(f"user-{len(self.users) + 1}", email, body.get("password"))
            return httpx.Response(200, json=self._session(user["id"]))

        if request.method == "POST" and path == "/logout":
            self.tokens.pop(bearer, None)
            return httpx.Response(204)

        if request.method == "GET" and path == "/admin/users":
            if request.headers.get("apikey") != "service-key":
                return httpx.Response(403, json={"msg": "not admin"})
            page = int(request.url.params.get("page", 1))
            per_page = int(request.url.params.get("per_page", 50))
            start = (page - 1) * per_page
            users = list(self.users.values())[start:start + per_page]
            return httpx.Response(200, json={"users": users})

        return httpx.Response(404, json={"msg": "not found"})


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        identity_url="http://idp.test",
        identity_anon_key="anon-key",
        identity_service_key="service-key",
        identity_timeout_seconds=2.0,
        sentry_dsn="",
    )


@pytest.fixture
def provider():
    provider = FakeProvider()
    provider.add_user("u-owner", "owner@example.com")
    provider.add_user("u-admin", "admin@example.com")
    provider.add_user("u-member", "member@example.com")
    provider.add_user("u-viewer", "viewer@example.com")
    provider.add_user("u-outsider", "outsider@example.com")
    return provider


@pytest.fixture
def identity(settings, provider):
    http = httpx.AsyncClient(transport=httpx.MockTransport(provider.handle))
    return IdentityClient(settings, http=http)


@pytest.fixture
def store():
    """A store holding project "acme" with one member of each role."""
    store = MemoryProjectStore(api_url="http://idp.test")
    now = utc_now()
    store.put_project(Project(
        id="acme",
        name="Acme",
        owner_id="u-owner",
        schema_name="proj_acme",
        status=ProjectStatus.ACTIVE,
        created_at=now,
        updated_at=now,
    ))
    for offset, (user_id, role) in enumerate([
        ("u-owner", ProjectRole.OWNER),
        ("u-admin", ProjectRole.ADMIN),
        ("u-member", ProjectRole.MEMBER),
        ("u-viewer", ProjectRole.VIEWER),
    ]):
        store.put_membership(Membership(
            project_id="acme",
            user_id=user_id,
            role=role,
            invited_at=now + timedelta(seconds=offset),
        ))
    return store


@pytest.fixture
def app(settings, identity, store):
    return create_app(settings=settings, identity=identity, store=store)


@pytest.fixture
def client(app):
    with TestClient(app, follow_redirects=False) as client:
        yield client


@pytest.fixture
def token_for():
    """Well-formed tokens the provider does not know about."""
    return make_token


@pytest.fixture
def auth_headers(provider):
    """Bearer headers for a user id."""

    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {provider.issue(user_id)}"}

    return _headers
