"""
tests/conftest.py -- Shared test fixtures for AssetDesk.

This module provides:
  - FakeClock / clock: a controllable UTC clock injected into TokenService and
    RefreshTokenLedger so expiry can be stepped over deterministically
  - config, tokens, user_store, ledger, service: unit-level auth core wired to
    an in-memory SQLite database
  - api: the real FastAPI app with a patched lifespan, backed by an isolated
    named shared-memory database and pre-seeded with one Admin and one Staff user

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API fixture because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to each
worker thread.

Environment must be set before any api/ or core/ import: get_settings() is
cached on first use and api.main reads it at import time.
"""

from __future__ import annotations

import os

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("BCRYPT_ROUNDS", "10")

import asyncio
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import ClassVar

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.ledger import RefreshTokenLedger
from auth.models import Role, User, UserStatus
from auth.passwords import hash_password
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import AuthConfig

ADMIN_PASSWORD = "Adminpass123"
STAFF_PASSWORD = "Alicepass123"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def config() -> AuthConfig:
    return AuthConfig(
        access_secret="a" * 16 + "access-secret-for-tests",
        refresh_secret="r" * 16 + "refresh-secret-for-tests",
        bcrypt_rounds=10,
    )


@pytest.fixture
def tokens(config: AuthConfig, clock: FakeClock) -> TokenService:
    return TokenService(config, clock=clock)


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def ledger(user_store: UserStore, clock: FakeClock) -> RefreshTokenLedger:
    return RefreshTokenLedger(user_store.engine, rounds=10, clock=clock)


@pytest.fixture
def service(user_store: UserStore, ledger: RefreshTokenLedger, tokens: TokenService) -> AuthService:
    return AuthService(user_store, ledger, tokens)


def add_user(
    store: UserStore,
    username: str,
    password: str,
    role: Role = Role.staff,
    status: UserStatus = UserStatus.active,
) -> int:
    return store.create_user(
        User(
            username=username,
            email=f"{username}@example.com",
            role=role,
            password_hash=hash_password(password, rounds=10),
            full_name=username.title(),
            status=status,
        )
    )


@pytest.fixture
def make_user(user_store: UserStore):
    """Factory fixture: make_user("alice", "Secret123", Role.staff) -> user_id."""

    def _make(username: str, password: str, role: Role = Role.staff, status: UserStatus = UserStatus.active) -> int:
        return add_user(user_store, username, password, role, status)

    return _make


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


@dataclass
class ApiHarness:
    client: TestClient
    user_store: UserStore
    ledger: RefreshTokenLedger
    tokens: TokenService
    clock: FakeClock
    admin_id: int
    staff_id: int

    admin_password: ClassVar[str] = ADMIN_PASSWORD
    staff_password: ClassVar[str] = STAFF_PASSWORD

    def login(self, username: str, password: str):
        return self.client.post("/api/v1/auth/login", json={"usernameOrEmail": username, "password": password})

    def bearer(self, user_id: int, username: str, role: Role) -> dict[str, str]:
        token = self.tokens.issue_access_token(user_id=user_id, username=username, role=role)
        return {"Authorization": f"Bearer {token}"}

    def admin_headers(self) -> dict[str, str]:
        return self.bearer(self.admin_id, "testadmin", Role.admin)

    def staff_headers(self) -> dict[str, str]:
        return self.bearer(self.staff_id, "alice", Role.staff)


def _patch_lifespan(user_store: UserStore, ledger: RefreshTokenLedger, tokens: TokenService):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-built test components into app.state so TestClient routes see an
    isolated database and the fake clock. The purge task is a long sleep so
    shutdown has a real asyncio.Task to cancel.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.ledger = ledger
        app.state.tokens = tokens
        app.state.auth_service = AuthService(user_store, ledger, tokens)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()
        with suppress(asyncio.CancelledError):
            await app.state.purge_task

    return test_lifespan


@pytest.fixture
def api(config: AuthConfig, clock: FakeClock) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness around the real app with an isolated database.

    Seeds "testadmin" (Admin) and "alice" (Staff) with the module-level passwords.
    """
    db_url = f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    user_store = UserStore(db_url)
    ledger = RefreshTokenLedger(user_store.engine, rounds=config.bcrypt_rounds, clock=clock)
    tokens = TokenService(config, clock=clock)

    admin_id = add_user(user_store, "testadmin", ADMIN_PASSWORD, Role.admin)
    staff_id = add_user(user_store, "alice", STAFF_PASSWORD, Role.staff)

    app.router.lifespan_context = _patch_lifespan(user_store, ledger, tokens)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(
            client=client,
            user_store=user_store,
            ledger=ledger,
            tokens=tokens,
            clock=clock,
            admin_id=admin_id,
            staff_id=staff_id,
        )

    user_store.close()
