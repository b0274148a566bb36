"""
tests/conftest.py -- Shared test fixtures for Keeper unit and integration tests.

This module provides:
  - engine / user_store / credential_store: plain in-memory SQLite for unit tests
  - hasher / tokens / keeper: the service object graph with bcrypt rounds=4
  - client: TestClient over the real FastAPI app with a patched lifespan

Design: the client fixture uses a named shared-memory SQLite URI (not plain
:memory:) because the route handlers run blocking calls in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. The named URI format (file:name?mode=memory&cache=shared
&uri=true) shares one in-memory instance across all connections. A fresh name
per test keeps tests independent.

The env vars must be set before any api/ import: get_settings() is cached on
first call and api.main reads it at import time.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any api/core import so get_settings() auto-generates
# SECRET_KEY in dev mode, accepts TestClient's Host header and never trips
# the login rate limit across test modules.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.gateway import AuthorizationGateway
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenService
from core.schema import create_db_engine
from service.keeper import KeeperService
from vault.store import CredentialStore

TEST_SECRET = "k" * 48


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    """bcrypt at the minimum cost factor -- same algorithm, fast enough for tests."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(TEST_SECRET)


@pytest.fixture
def engine():
    eng = create_db_engine("sqlite:///:memory:")
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def credential_store(engine) -> CredentialStore:
    return CredentialStore(engine)


@pytest.fixture
def keeper(user_store, credential_store, hasher, tokens) -> KeeperService:
    return KeeperService(user_store, credential_store, hasher, tokens, AuthorizationGateway(tokens))


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(keeper: KeeperService):
    """Return an async context manager that replaces the real lifespan.

    Wires a pre-built KeeperService into app.state so TestClient routes use
    an isolated in-memory database instead of the configured one.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.keeper = keeper
        yield

    return test_lifespan


@pytest.fixture
def client(hasher) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app backed by a fresh shared-memory DB."""
    db_url = f"sqlite:///file:test_keeper_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    eng = create_db_engine(db_url)
    tokens = TokenService(TEST_SECRET)
    keeper = KeeperService(UserStore(eng), CredentialStore(eng), hasher, tokens, AuthorizationGateway(tokens))

    app.router.lifespan_context = _patch_lifespan(keeper)

    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client

    eng.dispose()


@pytest.fixture
def registered(client: TestClient) -> tuple[TestClient, str, str]:
    """Register alice/secret123 and yield (client, user_id, token).

    The client's cookie jar holds the token cookie set by /register.
    """
    resp = client.post("/register", json={"username": "alice", "password": "secret123"})
    assert resp.status_code == 201, resp.text
    data = resp.json()
    return client, data["id"], data["token"]
