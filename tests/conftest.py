"""
tests/conftest.py -- Shared test fixtures for the Conduit auth core.

This module provides:
  - kdf / token_config: cheap, fixed configuration for fast tests
  - store: a fresh in-memory UserStore per test
  - service: a UserService wired to that store
  - _patch_lifespan(): wires test services into app.state, bypassing real startup
  - api_client: TestClient over the real app with an isolated store

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

The DEBUG env var must be set before any api import so get_settings() can
auto-generate JWT_SECRET in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any api/core import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.service import UserService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import KdfConfig, TokenConfig

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars-long"

# One round keeps key derivation fast; the cost factor is not under test here.
FAST_KDF = KdfConfig(rounds=1, key_length=32, salt_length=16)


@pytest.fixture
def kdf() -> KdfConfig:
    return FAST_KDF


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(secret=TEST_SECRET, issuer="conduit-test", ttl_seconds=3600)


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def tokens(token_config: TokenConfig, store: UserStore) -> TokenService:
    return TokenService(token_config, store)


@pytest.fixture
def service(store: UserStore, tokens: TokenService, kdf: KdfConfig) -> UserService:
    return UserService(store, tokens, kdf)


def _patch_lifespan(store: UserStore, service: UserService):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = store
        app.state.user_service = service
        yield

    return test_lifespan


@pytest.fixture
def api_client(token_config: TokenConfig) -> Generator[tuple[TestClient, UserService], None, None]:
    """Yield (client, service) for API integration tests.

    Each test gets its own named in-memory database so registrations in one
    test never collide with another. Rate limiting is switched off; the
    login limit would otherwise trip across the suite.
    """
    db_url = f"sqlite:///file:test_api_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    user_store = UserStore(db_url)
    user_service = UserService(user_store, TokenService(token_config, user_store), FAST_KDF)

    app.router.lifespan_context = _patch_lifespan(user_store, user_service)
    limiter.enabled = False

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_service

    limiter.enabled = True
    user_store.close()
