"""
tests/conftest.py -- Shared test fixtures for Gatekeeper.

This module provides:
  - unit fixtures: store, hasher, token_config, issuer, sessions, guard
  - make_user: factory that inserts a user straight through the store
  - client: TestClient over the real FastAPI app with an isolated store

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the TestClient fixture because route handlers run in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. Unit fixtures run in one thread and use plain :memory:.

DEBUG and ALLOWED_HOSTS must be set before any api/auth import so
get_settings() auto-generates secrets and TrustedHostMiddleware accepts the
TestClient's "testserver" host.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any api/auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app, wire_services
from auth.dependencies import AuthorizationGuard
from auth.models import Role, User
from auth.passwords import PasswordHasher
from auth.sessions import SessionManager
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import TokenConfig
from media.store import LocalObjectStore

ACCESS_SECRET = "a" * 40 + "-access-test-secret"
REFRESH_SECRET = "r" * 40 + "-refresh-test-secret"

# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(access_secret=ACCESS_SECRET, access_ttl=900, refresh_secret=REFRESH_SECRET, refresh_ttl=3600)


@pytest.fixture
def expired_config() -> TokenConfig:
    """Same secrets, negative lifetimes: every token it signs is already expired."""
    return TokenConfig(access_secret=ACCESS_SECRET, access_ttl=-60, refresh_secret=REFRESH_SECRET, refresh_ttl=-60)


@pytest.fixture
def issuer(token_config: TokenConfig) -> TokenIssuer:
    return TokenIssuer(token_config)


@pytest.fixture
def hasher() -> PasswordHasher:
    # Minimum bcrypt cost keeps the suite fast; the algorithm is identical.
    return PasswordHasher(rounds=4)


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def media(tmp_path) -> LocalObjectStore:
    return LocalObjectStore(tmp_path / "media", base_url="/media")


@pytest.fixture
def sessions(store: UserStore, hasher: PasswordHasher, issuer: TokenIssuer, media: LocalObjectStore) -> SessionManager:
    return SessionManager(store, hasher, issuer, media)


@pytest.fixture
def guard(store: UserStore, issuer: TokenIssuer) -> AuthorizationGuard:
    return AuthorizationGuard(store, issuer)


@pytest.fixture
def make_user(store: UserStore, hasher: PasswordHasher):
    """Factory that inserts a user straight into the unit-test store."""

    def _make(
        email: str = "a@x.com",
        password: str = "secret1",
        name: str = "A",
        handle: str | None = None,
        role: Role = Role.USER,
    ) -> User:
        return store.create_user(
            User(email=email, display_name=name, handle=handle, hashed_password=hasher.hash(password), role=role)
        )

    return _make


# ---------------------------------------------------------------------------
# Integration fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(store: UserStore, issuer: TokenIssuer, hasher: PasswordHasher, media: LocalObjectStore):
    """Return a lifespan that wires test collaborators instead of the real ones."""

    @asynccontextmanager
    async def test_lifespan(app):
        wire_services(app, store, issuer, hasher, media)
        yield

    return test_lifespan


@pytest.fixture
def client(
    issuer: TokenIssuer,
    hasher: PasswordHasher,
    media: LocalObjectStore,
) -> Generator[TestClient, None, None]:
    """TestClient over the real app, one fresh shared-memory store per test.

    The store is reachable as client.app.state.user_store for seeding and
    assertions.
    """
    url = f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    user_store = UserStore(db_url=url)
    app.router.lifespan_context = _patch_lifespan(user_store, issuer, hasher, media)

    with TestClient(app, raise_server_exceptions=True) as c:
        yield c

    user_store.close()
