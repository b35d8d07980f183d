"""
tests/conftest.py -- Shared test fixtures for ForsaLearn auth tests.

This module provides:
  - _make_test_store(): creates an isolated in-memory credential store
  - _patch_lifespan(): wires the test store and token issuer into app.state,
    bypassing real startup (no admin seeding, no on-disk database)
  - store / tokens: the collaborators a test talks to directly
  - client: TestClient over the real app, backed by `store` and `tokens`
  - make_principal / auth_headers: factories for principals and Bearer headers

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process. Every
test gets its own name, so no state leaks between tests.

Rate-limit counters live in the process-wide limiter; they are reset before
every test so each one starts with a full budget.

The DEBUG env var must be set before any auth module import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import (
    ADMIN,
    INSTRUCTOR,
    LEARNER,
    AdminProfile,
    InstructorProfile,
    LearnerProfile,
    Principal,
)
from auth.store import PrincipalStore
from auth.tokens import TokenIssuer
from core.config import get_settings

DEFAULT_PASSWORD = "secret123"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> PrincipalStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so tests never share
                   a database.
    """
    return PrincipalStore(f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(store: PrincipalStore, tokens: TokenIssuer):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.store = store
        app.state.tokens = tokens
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_rate_limits() -> None:
    limiter.reset()


@pytest.fixture
def store() -> Generator[PrincipalStore, None, None]:
    s = _make_test_store(uuid.uuid4().hex)
    yield s
    s.close()


@pytest.fixture
def tokens() -> TokenIssuer:
    return TokenIssuer.from_settings(get_settings())


@pytest.fixture
def client(store: PrincipalStore, tokens: TokenIssuer) -> Generator[TestClient, None, None]:
    """TestClient over the real app and route handlers, backed by the test store."""
    app.router.lifespan_context = _patch_lifespan(store, tokens)
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture
def make_principal(store: PrincipalStore) -> Callable[..., Principal]:
    """Factory that inserts a principal straight into the store (no HTTP, no rate limit).

    Instructors get one skill and are unapproved unless approved=True.
    """

    def _make(
        role: str = LEARNER,
        email: str | None = None,
        password: str = DEFAULT_PASSWORD,
        approved: bool = False,
        active: bool = True,
    ) -> Principal:
        profiles = {
            ADMIN: AdminProfile(),
            INSTRUCTOR: InstructorProfile(skills=["python"], is_approved=approved),
            LEARNER: LearnerProfile(skills_needed=["sql"]),
        }
        principal = Principal(
            first_name="Test",
            last_name="User",
            email=email or f"{role}-{uuid.uuid4().hex[:8]}@example.com",
            phone_number="0612345678",
            role=role,
            profile=profiles[role],
            is_active=active,
        )
        principal_id = store.create_principal(principal, password)
        return store.get_by_id(principal_id)

    return _make


@pytest.fixture
def auth_headers(tokens: TokenIssuer) -> Callable[[Principal], dict[str, str]]:
    """Factory returning an Authorization header carrying a fresh token for a principal."""

    def _headers(principal: Principal) -> dict[str, str]:
        return {"Authorization": f"Bearer {tokens.issue(principal.id, principal.role)}"}

    return _headers
