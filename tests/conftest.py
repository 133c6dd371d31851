"""
tests/conftest.py -- Shared test fixtures for Gatekeeper.

This module provides:
  - make_store(): an isolated named shared-memory SQLite UserStore
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus admin / employee tokens for API tests
  - directory: a SqlUserDirectory over a fresh store for unit tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

DEBUG must be set before any auth/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError. The
login rate limit is raised so the suite's own logins never hit a 429.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set env before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.directory import SqlUserDirectory
from auth.models import NewUser
from auth.roles import Role
from auth.service import login
from auth.store import UserStore

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Admin123*"
EMPLOYEE_EMAIL = "emma@example.com"
EMPLOYEE_PASSWORD = "Emma123*"

_db_counter = itertools.count()


def make_store(name: str) -> UserStore:
    """Create a UserStore on its own named shared-memory SQLite database.

    A counter suffix keeps every call isolated even when the same name is
    reused across tests.
    """
    url = f"sqlite:///file:test_{name}_{next(_db_counter)}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=url)


def _patch_lifespan(store: UserStore, directory: SqlUserDirectory):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = store
        app.state.directory = directory
        yield

    return test_lifespan


@dataclass
class ApiContext:
    client: TestClient
    directory: SqlUserDirectory
    admin_id: int
    admin_token: str
    employee_id: int
    employee_token: str

    def auth(self, token: str | None = None) -> dict[str, str]:
        return {"Authorization": f"Bearer {token or self.admin_token}"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = make_store("unit")
    yield s
    s.close()


@pytest.fixture
def directory(store: UserStore) -> SqlUserDirectory:
    return SqlUserDirectory(store)


@pytest.fixture(scope="module")
def api_client() -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers against an isolated in-memory store. An Admin and
    an Employee exist before the client starts; their tokens come from the
    real login workflow.
    """
    store = make_store("api")
    directory = SqlUserDirectory(store)

    admin = directory.create_user(
        NewUser(username="admin", email=ADMIN_EMAIL, password=ADMIN_PASSWORD, role_ids=[Role.ADMIN])
    )
    employee = directory.create_user(NewUser(username="emma", email=EMPLOYEE_EMAIL, password=EMPLOYEE_PASSWORD))
    admin_login = login(directory, ADMIN_EMAIL, ADMIN_PASSWORD)
    employee_login = login(directory, EMPLOYEE_EMAIL, EMPLOYEE_PASSWORD)
    assert admin_login is not None and employee_login is not None

    app.router.lifespan_context = _patch_lifespan(store, directory)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(
            client=client,
            directory=directory,
            admin_id=admin.id,
            admin_token=admin_login.token,
            employee_id=employee.id,
            employee_token=employee_login.token,
        )

    store.close()
